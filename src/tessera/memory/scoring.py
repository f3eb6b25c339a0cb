"""Importance scoring for exchanges."""

from collections.abc import Sequence

from .models import ExtractedFact, FactType

BASELINE_IMPORTANCE = 5

# Minimum score an exchange gets when it carries a fact of this type.
TYPE_FLOORS: dict[FactType, int] = {
    FactType.PERSONAL_INFO: 9,
    FactType.LOCATION: 8,
    FactType.WORK: 7,
}

QUESTION_FLOOR = 6
LONG_MESSAGE_FLOOR = 6
LONG_MESSAGE_CHARS = 200


def calculate_importance(user_message: str, facts: Sequence[ExtractedFact]) -> int:
    """Score an exchange from 1 to 10.

    Every signal only raises a floor, so the strongest signal wins and no
    check can lower a score set by another.

    Args:
        user_message: What the user said.
        facts: Facts extracted from the exchange.

    Returns:
        The importance score.
    """
    importance = BASELINE_IMPORTANCE

    present = {fact.type for fact in facts}
    for fact_type, floor in TYPE_FLOORS.items():
        if fact_type in present:
            importance = max(importance, floor)

    if "?" in user_message:
        importance = max(importance, QUESTION_FLOOR)

    if len(user_message) > LONG_MESSAGE_CHARS:
        importance = max(importance, LONG_MESSAGE_FLOOR)

    return min(importance, 10)
