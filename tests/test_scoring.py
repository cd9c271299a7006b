"""Summary: Tests for importance scoring.

Importance: Ensures the score formula stays bounded and ranks urgent traffic high.
Alternatives: Review dashboard ordering manually.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from newsroom.models import Message, Reaction, TagSuggestion
from newsroom.scoring import (
    estimate_importance,
    importance_score,
    keyword_bonus,
    length_bonus,
    reaction_bonus,
)


def _message(text: str, reactions: tuple[Reaction, ...] = ()) -> Message:
    return Message(
        id="C1.1",
        channel_id="C1",
        user_id="U1",
        text=text,
        timestamp=datetime(2026, 1, 15, tzinfo=timezone.utc),
        reactions=reactions,
    )


def test_urgent_production_message_scores_high() -> None:
    """Summary: Verify an urgent production incident scores at least 0.9.

    Importance: Incidents must rank at the top of the dashboard.
    Alternatives: Rank by recency only.
    """

    message = _message(
        "urgent deployment issue", (Reaction(name="eyes", count=5, users=("U2",)),)
    )
    suggestions = [TagSuggestion(tag="urgent", category="urgency", confidence=0.9)]
    score = importance_score(message, suggestions, multiplier=1.3)
    assert score >= 0.9
    assert score == 1.0


def test_plain_message_gets_base_score() -> None:
    assert importance_score(_message("lunch?"), []) == pytest.approx(0.3)


def test_score_components() -> None:
    """Summary: Verify the individual bonus caps.

    Importance: Caps keep any single signal from dominating.
    Alternatives: Use uncapped linear weights.
    """

    many = tuple(Reaction(name=f"r{i}", count=3) for i in range(6))
    assert reaction_bonus(_message("x", many)) == pytest.approx(0.5)
    assert length_bonus("word " * 51) == pytest.approx(0.1)
    assert length_bonus("word " * 101) == pytest.approx(0.2)
    assert keyword_bonus("release launch bug issue problem decision") == pytest.approx(0.2)


def test_type_bonus_uses_first_type_suggestion() -> None:
    suggestions = [
        TagSuggestion(tag="announcement", category="type", confidence=0.9),
        TagSuggestion(tag="status-update", category="type", confidence=0.9),
    ]
    assert importance_score(_message("hello"), suggestions) == pytest.approx(0.5)


def test_score_is_clamped_for_any_multiplier() -> None:
    message = _message("critical " * 120, (Reaction(name="fire", count=10),))
    suggestions = [TagSuggestion(tag="critical", category="urgency", confidence=1.0)]
    for multiplier in (0.0, 0.9, 1.0, 1.3, 5.0):
        assert 0.0 <= importance_score(message, suggestions, multiplier) <= 1.0


def test_estimate_importance_prefers_stored_score() -> None:
    scored = Message(
        id="C1.2",
        channel_id="C1",
        user_id="U1",
        text="hi",
        timestamp=datetime(2026, 1, 15, tzinfo=timezone.utc),
        importance=0.8,
    )
    assert estimate_importance(scored) == 0.8
    assert estimate_importance(_message("release today")) == pytest.approx(0.35)
