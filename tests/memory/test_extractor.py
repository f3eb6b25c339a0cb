"""Tests for rule-based fact extraction."""

import pytest

from tessera.memory import ExtractedFact, FactExtractor, FactType, extract_facts
from tessera.memory.extractor import (
    DEFAULT_RULES,
    LocationRule,
    NameRule,
    PreferenceRule,
    WorkRule,
    format_exchange,
    is_negative_exchange,
)


def facts_of(facts: list[ExtractedFact], fact_type: FactType) -> list[str]:
    return [f.fact for f in facts if f.type == fact_type]


class TestFormatExchange:
    """Tests for the text the rules scan."""

    def test_user_only(self):
        assert format_exchange("Hello") == "User: Hello"

    def test_with_assistant(self):
        assert format_exchange("Hello", "Hi!") == "User: Hello\nAssistant: Hi!"

    def test_empty_assistant_omitted(self):
        assert format_exchange("Hello", "") == "User: Hello"


class TestNameRule:
    """Tests for personal_info extraction."""

    def test_my_name_is(self):
        facts = extract_facts("My name is Alice")
        assert facts == [
            ExtractedFact(fact="User's name is Alice", type=FactType.PERSONAL_INFO, importance=9)
        ]

    def test_multi_word_name(self):
        facts = extract_facts("You can call me Mary Jane")
        assert facts_of(facts, FactType.PERSONAL_INFO) == ["User's name is Mary Jane"]

    def test_this_is_name_speaking(self):
        facts = extract_facts("Hello, this is Bob speaking")
        assert facts_of(facts, FactType.PERSONAL_INFO) == ["User's name is Bob"]

    def test_trigger_is_case_insensitive(self):
        facts = extract_facts("MY NAME IS Alice")
        assert facts_of(facts, FactType.PERSONAL_INFO) == ["User's name is Alice"]

    def test_lowercase_name_is_ignored(self):
        """Name tokens must be capitalized."""
        assert facts_of(extract_facts("my name is alice"), FactType.PERSONAL_INFO) == []

    def test_name_stops_at_line_end(self):
        facts = extract_facts("My name is Alice", "Assistant Tessera here")
        assert "User's name is Alice" in facts_of(facts, FactType.PERSONAL_INFO)

    def test_short_name_rejected(self):
        """Captures of two characters or fewer are noise."""
        assert facts_of(extract_facts("call me Al"), FactType.PERSONAL_INFO) == []


class TestLocationRule:
    """Tests for location extraction."""

    def test_i_live_in(self):
        facts = extract_facts("I live in Paris")
        assert facts == [
            ExtractedFact(fact="User is from/lives in Paris", type=FactType.LOCATION, importance=8)
        ]

    def test_based_in(self):
        facts = extract_facts("I'm currently based in berlin")
        assert facts_of(facts, FactType.LOCATION) == ["User is from/lives in berlin"]

    def test_city_region_form(self):
        facts = extract_facts("We just flew in from Lisbon, Portugal")
        assert facts_of(facts, FactType.LOCATION) == ["User is from/lives in Lisbon, Portugal"]

    def test_place_does_not_cross_into_reply(self):
        facts = extract_facts("I live in Paris", "Nice city")
        assert facts_of(facts, FactType.LOCATION) == ["User is from/lives in Paris"]


class TestWorkRule:
    """Tests for work extraction."""

    def test_work_as(self):
        facts = extract_facts("I work as a nurse")
        assert facts == [
            ExtractedFact(fact="User works as/at a nurse", type=FactType.WORK, importance=7)
        ]

    def test_employed_by(self):
        facts = extract_facts("I'm employed by Acme & Sons")
        assert facts_of(facts, FactType.WORK) == ["User works as/at Acme & Sons"]


class TestPreferenceRule:
    """Tests for preference extraction and polarity."""

    def test_positive(self):
        facts = extract_facts("I love hiking")
        assert facts == [
            ExtractedFact(fact="User likes hiking", type=FactType.PREFERENCE, importance=5)
        ]

    def test_favorite(self):
        facts = extract_facts("My favorite is sushi")
        assert facts_of(facts, FactType.PREFERENCE) == ["User likes sushi"]

    def test_negative(self):
        facts = extract_facts("I dislike olives")
        assert facts_of(facts, FactType.PREFERENCE) == ["User dislikes olives"]

    def test_negation_applies_to_whole_exchange(self):
        """One negative marker turns every preference of the exchange into a dislike."""
        facts = extract_facts("I hate rain but I love tea")
        preferences = facts_of(facts, FactType.PREFERENCE)
        assert len(preferences) == 2
        assert "User dislikes tea" in preferences
        assert all(p.startswith("User dislikes ") for p in preferences)

    def test_negation_in_reply_counts(self):
        facts = extract_facts("I like jazz", "Some people hate jazz")
        assert facts_of(facts, FactType.PREFERENCE) == ["User dislikes jazz"]

    def test_short_capture_rejected(self):
        assert extract_facts("I like it") == []

    def test_is_negative_exchange(self):
        assert is_negative_exchange("User: I don't like mornings")
        assert not is_negative_exchange("User: I like mornings")


class TestFactExtractor:
    """Tests for combining rules."""

    def test_multiple_families_in_one_message(self):
        facts = extract_facts("Hi, my name is Alice and I live in Paris, France")

        assert facts[0] == ExtractedFact(
            fact="User's name is Alice", type=FactType.PERSONAL_INFO, importance=9
        )
        locations = facts_of(facts, FactType.LOCATION)
        assert len(locations) == 1
        assert "Paris" in locations[0]

    def test_no_facts(self):
        assert extract_facts("What's the weather like?") == []

    def test_deterministic(self):
        message = "I'm from Toronto, Canada and I work as a chef. I love jazz"
        assert extract_facts(message) == extract_facts(message)

    def test_default_rule_order(self):
        assert [rule.name for rule in DEFAULT_RULES] == [
            "personal_info",
            "location",
            "work",
            "preference",
        ]

    @pytest.mark.parametrize(
        "rule,message,expected_type",
        [
            (NameRule(), "My name is Alice", FactType.PERSONAL_INFO),
            (LocationRule(), "I live in Rome", FactType.LOCATION),
            (WorkRule(), "I work as a pilot", FactType.WORK),
            (PreferenceRule(), "I enjoy chess", FactType.PREFERENCE),
        ],
    )
    def test_rule_alone(self, rule, message, expected_type):
        facts = rule.match(format_exchange(message))
        assert len(facts) == 1
        assert facts[0].type == expected_type

    def test_custom_rules(self):
        extractor = FactExtractor(rules=[NameRule()])
        facts = extractor.extract("My name is Alice and I live in Paris")
        assert [f.type for f in facts] == [FactType.PERSONAL_INFO]
