"""Summary: Contextual tag rules based on message text and channel name.

Importance: Provides deterministic tag suggestions that complement the language model.
Alternatives: Use a supervised classifier trained on past corrections.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ContextRule:
    """Summary: Keyword rule mapping text or channel hits to a tag.

    Importance: Keeps rule precedence inspectable as plain data.
    Alternatives: Hardcode conditionals per tag.
    """

    tag: str
    text_keywords: tuple[str, ...]
    channel_keywords: tuple[str, ...] = ()


CONTEXT_RULES: tuple[ContextRule, ...] = (
    ContextRule(tag="deployment", text_keywords=("deploy",), channel_keywords=("deployment",)),
    ContextRule(tag="bug-fix", text_keywords=("bug", "issue"), channel_keywords=("bug",)),
    ContextRule(tag="release", text_keywords=("release", "launch")),
    ContextRule(tag="urgent", text_keywords=("urgent", "critical")),
)


@dataclass(frozen=True)
class RuleBasedTagger:
    """Summary: Simple keyword-based contextual tagger.

    Importance: Offers deterministic, fast tagging without AI.
    Alternatives: Ask the language model for every tag.
    """

    rules: tuple[ContextRule, ...] = CONTEXT_RULES

    def contextual_tags(self, text: str, channel_name: str) -> list[str]:
        """Summary: Suggest tags based on keyword and channel-name matches.

        Importance: Fills gaps the model misses for well-known operational topics.
        Alternatives: Require manual tagging for these topics.
        """

        lowered_text = text.lower()
        lowered_channel = channel_name.lower()
        tags: list[str] = []
        for rule in self.rules:
            text_hit = any(keyword in lowered_text for keyword in rule.text_keywords)
            channel_hit = any(keyword in lowered_channel for keyword in rule.channel_keywords)
            if (text_hit or channel_hit) and rule.tag not in tags:
                tags.append(rule.tag)
        return tags
