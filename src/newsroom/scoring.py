"""Summary: Importance scoring for channel messages.

Importance: Turns reactions, length, model signals, and keywords into a [0, 1] score.
Alternatives: Ask the language model for a numeric importance directly.
"""

from __future__ import annotations

from newsroom.models import Message, TagSuggestion

BASE_SCORE = 0.3

IMPORTANCE_KEYWORDS = (
    "deployment",
    "release",
    "bug",
    "critical",
    "urgent",
    "issue",
    "decision",
    "announcement",
    "milestone",
    "launch",
    "problem",
)

URGENCY_BONUS = {"critical": 0.4, "urgent": 0.3, "important": 0.2}

TYPE_BONUS = {
    "announcement": 0.2,
    "issue": 0.2,
    "achievement": 0.15,
    "decision": 0.15,
    "status-update": 0.1,
}


def reaction_bonus(message: Message) -> float:
    total = sum(reaction.count for reaction in message.reactions)
    variety = len(message.reactions)
    return min(0.3, 0.1 * total) + min(0.2, 0.05 * variety)


def length_bonus(text: str) -> float:
    word_count = len(text.split())
    bonus = 0.0
    if word_count > 50:
        bonus += 0.1
    if word_count > 100:
        bonus += 0.1
    return bonus


def keyword_bonus(text: str) -> float:
    lowered = text.lower()
    hits = sum(1 for keyword in IMPORTANCE_KEYWORDS if keyword in lowered)
    return min(0.2, 0.05 * hits)


def suggestion_bonus(suggestions: list[TagSuggestion], category: str, table: dict[str, float]) -> float:
    """Summary: Bonus from the first suggestion of a category.

    Importance: Lets model urgency and message-type signals lift the score.
    Alternatives: Sum bonuses across all suggestions of the category.
    """

    for suggestion in suggestions:
        if suggestion.category == category:
            return table.get(suggestion.tag.lower(), 0.0)
    return 0.0


def importance_score(
    message: Message, suggestions: list[TagSuggestion], multiplier: float = 1.0
) -> float:
    """Summary: Compute the clamped importance score for a message.

    Importance: Drives dashboard sorting, highlights, and summary excerpts.
    Alternatives: Rank messages by reaction count alone.
    """

    score = BASE_SCORE
    score += reaction_bonus(message)
    score += length_bonus(message.text)
    score += suggestion_bonus(suggestions, "urgency", URGENCY_BONUS)
    score += suggestion_bonus(suggestions, "type", TYPE_BONUS)
    score += keyword_bonus(message.text)
    return min(1.0, max(0.0, score * multiplier))


def estimate_importance(message: Message) -> float:
    """Summary: Model-free importance estimate for unscored messages.

    Importance: Orders summary excerpts when analysis has not run yet.
    Alternatives: Treat unscored messages as equally important.
    """

    if message.importance is not None:
        return message.importance
    score = BASE_SCORE + min(0.3, 0.1 * sum(r.count for r in message.reactions))
    score += length_bonus(message.text) + keyword_bonus(message.text)
    return min(1.0, score)
