"""Short human-readable summaries of exchanges."""

from collections.abc import Sequence

from .models import ExtractedFact

MAX_FACTS = 3
MAX_MESSAGE_CHARS = 100
LONG_MESSAGE_CHARS = 50


def _excerpt(message: str) -> str:
    if len(message) > MAX_MESSAGE_CHARS:
        return message[:MAX_MESSAGE_CHARS] + "..."
    return message


def generate_summary(user_message: str, facts: Sequence[ExtractedFact]) -> str:
    """Condense an exchange into a one-line summary.

    The most important facts win; without facts, questions and long
    messages get a labeled excerpt and short messages are kept as-is.
    """
    if facts:
        # sorted() is stable, so equal importance keeps extraction order
        top = sorted(facts, key=lambda f: f.importance, reverse=True)[:MAX_FACTS]
        return ". ".join(f.fact for f in top)

    if "?" in user_message:
        return f"User asked: {_excerpt(user_message)}"

    if len(user_message) > LONG_MESSAGE_CHARS:
        return f"User said: {_excerpt(user_message)}"

    return user_message
