"""Tests for summary generation."""

from tessera.memory import ExtractedFact, FactType, generate_summary


def make_facts() -> list[ExtractedFact]:
    return [
        ExtractedFact("User likes tea", FactType.PREFERENCE, 5),
        ExtractedFact("User's name is Alice", FactType.PERSONAL_INFO, 9),
        ExtractedFact("User works as/at a nurse", FactType.WORK, 7),
        ExtractedFact("User is from/lives in Paris", FactType.LOCATION, 8),
    ]


class TestWithFacts:
    """Summaries built from facts."""

    def test_top_three_by_importance(self):
        summary = generate_summary("anything", make_facts())
        assert summary == (
            "User's name is Alice. User is from/lives in Paris. User works as/at a nurse"
        )

    def test_ties_keep_extraction_order(self):
        facts = [
            ExtractedFact("User likes tea", FactType.PREFERENCE, 5),
            ExtractedFact("User likes jazz", FactType.PREFERENCE, 5),
        ]
        assert generate_summary("I like tea and jazz", facts) == "User likes tea. User likes jazz"

    def test_does_not_mutate_facts(self):
        facts = make_facts()
        before = list(facts)
        generate_summary("anything", facts)
        assert facts == before


class TestWithoutFacts:
    """Summaries built from the message."""

    def test_question(self):
        assert generate_summary("What time is it?", []) == "User asked: What time is it?"

    def test_long_question_truncated(self):
        message = "Why " * 40 + "?"
        summary = generate_summary(message, [])
        assert summary == "User asked: " + message[:100] + "..."

    def test_long_statement(self):
        message = "I spent the whole weekend reorganizing my bookshelves"
        assert len(message) > 50
        assert generate_summary(message, []) == f"User said: {message}"

    def test_long_statement_truncated(self):
        message = "a" * 150
        summary = generate_summary(message, [])
        assert summary.startswith("User said: ")
        body = summary[len("User said: "):]
        assert body.endswith("...")
        assert len(body) - len("...") <= 100

    def test_short_message_verbatim(self):
        assert generate_summary("Thanks!", []) == "Thanks!"
