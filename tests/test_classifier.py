"""Summary: Tests for contextual tag rules.

Importance: Ensures deterministic tags complement model suggestions.
Alternatives: Skip tests and rely on manual validation.
"""

from __future__ import annotations

from newsroom.classifier import ContextRule, RuleBasedTagger


def test_contextual_tags_from_text_and_channel() -> None:
    """Summary: Verify text and channel-name rules both produce tags.

    Importance: Channel names carry topic signal even for short messages.
    Alternatives: Use message text only.
    """

    tagger = RuleBasedTagger()
    assert tagger.contextual_tags("We plan to deploy at noon", "general") == ["deployment"]
    assert tagger.contextual_tags("all good", "deployment-status") == ["deployment"]
    assert tagger.contextual_tags("all good", "bug-triage") == ["bug-fix"]
    assert tagger.contextual_tags("Critical issue before the launch", "ops") == [
        "bug-fix",
        "release",
        "urgent",
    ]


def test_contextual_tags_empty_without_matches() -> None:
    assert RuleBasedTagger().contextual_tags("lunch at noon?", "random") == []


def test_custom_rules_replace_defaults() -> None:
    tagger = RuleBasedTagger(rules=(ContextRule(tag="billing", text_keywords=("invoice",)),))
    assert tagger.contextual_tags("Invoice sent", "finance") == ["billing"]
    assert tagger.contextual_tags("deploy now", "finance") == []
