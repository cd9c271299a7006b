"""Summary: Tests for model response parsing.

Importance: Ensures both parse paths degrade to safe values.
Alternatives: Trust model output formatting.
"""

from __future__ import annotations

from newsroom.responses import (
    DEFAULT_GREETINGS,
    DEFAULT_HIGHLIGHTS,
    DEFAULT_SUMMARY,
    DEFAULT_TOPICS,
    parse_sectioned,
    parse_structured,
)


def test_parse_structured_reads_fenced_json() -> None:
    """Summary: Verify suggestions are read from a fenced JSON block.

    Importance: Models often wrap JSON in markdown fences.
    Alternatives: Require raw JSON only.
    """

    text = (
        "Here you go:\n```json\n"
        '{"suggestions": [{"tag": "Deployment", "category": "keyword", "confidence": 0.9}],'
        ' "urgencyLevel": "critical"}\n```'
    )
    parsed = parse_structured(text)
    assert parsed.valid
    assert parsed.urgency == "critical"
    assert parsed.suggestions[0].tag == "deployment"
    assert parsed.suggestions[0].confidence == 0.9


def test_parse_structured_malformed_defaults() -> None:
    parsed = parse_structured("not json at all")
    assert not parsed.valid
    assert parsed.suggestions == ()
    assert parsed.urgency == "medium"


def test_parse_structured_skips_bad_items_and_invalid_urgency() -> None:
    """Summary: Verify malformed suggestions are skipped individually.

    Importance: One bad item must not discard the rest.
    Alternatives: Reject the whole response.
    """

    text = (
        '{"suggestions": [{"tag": "", "confidence": 0.9}, {"category": "type"},'
        ' {"tag": "release", "confidence": "0.75"}], "urgencyLevel": "whenever"}'
    )
    parsed = parse_structured(text)
    assert [item.tag for item in parsed.suggestions] == ["release"]
    assert parsed.suggestions[0].confidence == 0.75
    assert parsed.urgency == "medium"


def test_parse_sectioned_reads_all_sections() -> None:
    """Summary: Verify every labeled section is parsed.

    Importance: Confirms the happy path for summary generation.
    Alternatives: Ask the model for JSON instead.
    """

    text = (
        "GREETING: Morning team!\n\n"
        "SUMMARY: Checkout incident resolved.\nRelease is on track.\n\n"
        "KEY_TOPICS: incident, release\n\n"
        "SENTIMENT: Mostly positive\n\n"
        "HIGHLIGHTS:\n- Rollback completed\n• Release 2.4 Thursday\n\n"
        "ACTION_ITEMS:\n- Write postmortem\n"
    )
    parsed = parse_sectioned(text, include_greeting=True)
    assert parsed.greeting == "Morning team!"
    assert parsed.summary == "Checkout incident resolved.\nRelease is on track."
    assert parsed.key_topics == ("incident", "release")
    assert parsed.sentiment == "positive"
    assert parsed.highlights == ("Rollback completed", "Release 2.4 Thursday")
    assert parsed.action_items == ("Write postmortem",)
    assert parsed.missing == ()


def test_parse_sectioned_defaults_for_missing_sections() -> None:
    """Summary: Verify defaults fill every missing section.

    Importance: A degraded summary is still a valid summary.
    Alternatives: Fail when sections are missing.
    """

    parsed = parse_sectioned("The model rambled without labels.", include_greeting=True)
    assert parsed.summary == DEFAULT_SUMMARY
    assert parsed.key_topics == DEFAULT_TOPICS
    assert parsed.highlights == DEFAULT_HIGHLIGHTS
    assert parsed.sentiment == "neutral"
    assert parsed.action_items == ()
    assert parsed.greeting in DEFAULT_GREETINGS
    assert "SUMMARY" in parsed.missing


def test_parse_sectioned_omits_greeting_unless_requested() -> None:
    parsed = parse_sectioned("GREETING: hi\nSUMMARY: ok", include_greeting=False)
    assert parsed.greeting is None
    assert parsed.summary == "ok"
