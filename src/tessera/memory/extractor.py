"""Rule-based fact extraction from conversational exchanges.

Each rule family is an independent ``FactRule`` that scans the whole
exchange and yields zero or more facts. Rules run unconditionally and
their results are concatenated, so one exchange can produce a name, a
location and a preference at once.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from .models import ExtractedFact, FactType

logger = logging.getLogger(__name__)

# Captures of this length or shorter are noise ("a", "it").
MIN_CAPTURE_LENGTH = 3

# One or more capitalized words on the same line. Case-sensitive even
# inside an IGNORECASE pattern.
_NAME = r"(?-i:[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*)"
_WORD = r"(?-i:[A-Z][a-z]+)"

NEGATION_MARKERS = ("don't like", "dislike", "hate")


def format_exchange(user_message: str, assistant_response: str | None = None) -> str:
    """Join an exchange into the text the rules scan."""
    text = f"User: {user_message}"
    if assistant_response:
        text += f"\nAssistant: {assistant_response}"
    return text


def _clean(capture: str | None) -> str | None:
    """Trim a capture and drop it if it is too short to mean anything."""
    if capture is None:
        return None
    capture = capture.strip()
    if len(capture) < MIN_CAPTURE_LENGTH:
        return None
    return capture


class FactRule(ABC):
    """A named extraction rule."""

    name: str = "rule"

    @abstractmethod
    def match(self, text: str) -> list[ExtractedFact]:
        """Return every fact this rule finds in ``text``."""
        ...


class PatternRule(FactRule):
    """Rule driven by a list of regular expressions.

    Subclasses set the patterns, the fact type and importance, and
    implement ``describe`` to turn a regex match into a statement.
    """

    patterns: Sequence[re.Pattern[str]] = ()
    fact_type: FactType = FactType.GENERAL
    importance: int = 5

    def match(self, text: str) -> list[ExtractedFact]:
        facts: list[ExtractedFact] = []
        for pattern in self.patterns:
            for found in pattern.finditer(text):
                statement = self.describe(found, text)
                if statement is None:
                    continue
                facts.append(
                    ExtractedFact(
                        fact=statement,
                        type=self.fact_type,
                        importance=self.importance,
                    )
                )
        return facts

    @abstractmethod
    def describe(self, found: re.Match[str], text: str) -> str | None:
        """Build the fact statement for one match, or None to skip it."""
        ...


class NameRule(PatternRule):
    """"my name is Alice", "call me Bob", "this is Carol speaking"."""

    name = "personal_info"
    fact_type = FactType.PERSONAL_INFO
    importance = 9
    patterns = (
        re.compile(rf"\b(?:my name is|i'm|i am|call me)[ \t]+({_NAME})", re.IGNORECASE),
        re.compile(rf"\bthis is[ \t]+({_NAME})[ \t]+(?:speaking|here)\b", re.IGNORECASE),
    )

    def describe(self, found: re.Match[str], text: str) -> str | None:
        name = _clean(found.group(1))
        return f"User's name is {name}" if name else None


class LocationRule(PatternRule):
    """"I live in Paris", "based in Berlin", "from Toronto, Canada"."""

    name = "location"
    fact_type = FactType.LOCATION
    importance = 8
    patterns = (
        re.compile(
            r"\b(?:i live in|i'm from|i am from|based in|located in)[ \t]+([a-z ,]+)",
            re.IGNORECASE,
        ),
        re.compile(rf"\bfrom[ \t]+({_NAME}),?[ \t]+({_WORD})", re.IGNORECASE),
    )

    def describe(self, found: re.Match[str], text: str) -> str | None:
        place = found.group(1)
        if found.re.groups > 1 and found.group(2):
            place = f"{place.strip()}, {found.group(2)}"
        place = _clean(place)
        return f"User is from/lives in {place}" if place else None


class WorkRule(PatternRule):
    """"I work as a nurse", "I'm a developer", "employed by Acme"."""

    name = "work"
    fact_type = FactType.WORK
    importance = 7
    patterns = (
        re.compile(
            r"\b(?:i work as|i am a|i'm a|my job is|i do)[ \t]+([a-z ]+)",
            re.IGNORECASE,
        ),
        re.compile(r"\b(?:work at|employed by|job at)[ \t]+([a-z &]+)", re.IGNORECASE),
    )

    def describe(self, found: re.Match[str], text: str) -> str | None:
        role = _clean(found.group(1))
        return f"User works as/at {role}" if role else None


class PreferenceRule(PatternRule):
    """Likes and dislikes.

    Polarity is decided once for the whole exchange: if any negative
    marker appears anywhere in the text, every preference found in that
    exchange is recorded as a dislike. "I hate rain but I love tea"
    therefore yields two dislikes.
    """

    name = "preference"
    fact_type = FactType.PREFERENCE
    importance = 5
    patterns = (
        re.compile(r"\b(?:i prefer|i like|i love|i enjoy)[ \t]+([a-z ,]+)", re.IGNORECASE),
        re.compile(r"\b(?:i don't like|i dislike|i hate)[ \t]+([a-z ,]+)", re.IGNORECASE),
        re.compile(
            r"\b(?:favorite|favourite)[ \t]+(?:(?:is|are)\b)?[ \t]*([a-z ,]+)",
            re.IGNORECASE,
        ),
    )

    def describe(self, found: re.Match[str], text: str) -> str | None:
        thing = _clean(found.group(1))
        if not thing:
            return None
        verb = "dislikes" if is_negative_exchange(text) else "likes"
        return f"User {verb} {thing}"


def is_negative_exchange(text: str) -> bool:
    """Whether an exchange contains any negative preference marker."""
    lowered = text.lower()
    return any(marker in lowered for marker in NEGATION_MARKERS)


DEFAULT_RULES: tuple[FactRule, ...] = (
    NameRule(),
    LocationRule(),
    WorkRule(),
    PreferenceRule(),
)


class FactExtractor:
    """Extracts facts from an exchange by running a set of rules."""

    def __init__(self, rules: Iterable[FactRule] | None = None) -> None:
        """Initialize the extractor.

        Args:
            rules: Rules to run, in order. Defaults to ``DEFAULT_RULES``.
        """
        self.rules: tuple[FactRule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES

    def extract(
        self, user_message: str, assistant_response: str | None = None
    ) -> list[ExtractedFact]:
        """Extract facts from one user message and optional reply.

        Args:
            user_message: What the user said.
            assistant_response: The assistant's reply, if any.

        Returns:
            Facts from every rule, in rule order. Not deduplicated.
        """
        text = format_exchange(user_message, assistant_response)
        facts: list[ExtractedFact] = []
        for rule in self.rules:
            facts.extend(rule.match(text))

        logger.debug("extracted %d facts from exchange", len(facts))
        return facts


_default_extractor = FactExtractor()


def extract_facts(
    user_message: str, assistant_response: str | None = None
) -> list[ExtractedFact]:
    """Extract facts with the default rule set."""
    return _default_extractor.extract(user_message, assistant_response)
