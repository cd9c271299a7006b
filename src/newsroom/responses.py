"""Summary: Parsing of language model output into typed results.

Importance: Separates the strict JSON path for tagging from the lenient section path for summaries.
Alternatives: Let each service parse raw model text inline.
"""

from __future__ import annotations

import json
import logging
import random
import re
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from newsroom.models import SENTIMENTS, URGENCY_LEVELS, TagSuggestion

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "No significant activity found."
DEFAULT_TOPICS = ("general discussion",)
DEFAULT_HIGHLIGHTS = ("Review messages for details",)
DEFAULT_SENTIMENT = "neutral"
DEFAULT_URGENCY = "medium"

DEFAULT_GREETINGS = (
    "Good morning! Here's your daily rundown of yesterday's Slack activity. "
    "Let's make today productive!",
    "Rise and shine! Here's what happened in your Slack channels yesterday. "
    "Ready to tackle today?",
    "Good morning! Your Slack summary is ready. "
    "Let's dive into yesterday's key discussions and decisions.",
)

MAX_TOPICS = 10

SECTION_NAMES = ("GREETING", "SUMMARY", "KEY_TOPICS", "SENTIMENT", "HIGHLIGHTS", "ACTION_ITEMS")


class TagSuggestionPayload(BaseModel):
    """Summary: Validated shape of one suggestion in model JSON.

    Importance: Rejects suggestions without a tag or with non-numeric confidence.
    Alternatives: Trust dictionary keys from the model.
    """

    model_config = ConfigDict(extra="ignore")

    tag: str = Field(min_length=1)
    category: str = "keyword"
    confidence: float = 0.0
    reasoning: str | None = None


class TagAnalysisPayload(BaseModel):
    """Summary: Validated envelope of the tag analysis response.

    Importance: Normalizes urgency to a known level before scoring.
    Alternatives: Parse urgency with string checks at each call site.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    suggestions: list[dict] = Field(default_factory=list)
    urgency: str = Field(default=DEFAULT_URGENCY, alias="urgencyLevel")

    @field_validator("urgency", mode="before")
    @classmethod
    def _normalize_urgency(cls, value: object) -> str:
        if isinstance(value, str) and value.lower() in URGENCY_LEVELS:
            return value.lower()
        return DEFAULT_URGENCY


@dataclass(frozen=True)
class StructuredResponse:
    """Summary: Result of the strict JSON parse path.

    Importance: Gives the orchestrator suggestions and urgency even for malformed output.
    Alternatives: Raise on malformed output and fail the analysis.
    """

    suggestions: tuple[TagSuggestion, ...]
    urgency: str
    valid: bool


@dataclass(frozen=True)
class SectionedResponse:
    """Summary: Result of the lenient section parse path.

    Importance: Every field is populated, with defaults for missing sections.
    Alternatives: Return None for missing sections and check downstream.
    """

    summary: str = DEFAULT_SUMMARY
    key_topics: tuple[str, ...] = DEFAULT_TOPICS
    highlights: tuple[str, ...] = DEFAULT_HIGHLIGHTS
    sentiment: str = DEFAULT_SENTIMENT
    action_items: tuple[str, ...] = ()
    greeting: str | None = None
    missing: tuple[str, ...] = field(default_factory=tuple)


def parse_structured(text: str) -> StructuredResponse:
    """Summary: Parse tag analysis JSON, degrading to an empty result.

    Importance: Malformed model output yields no suggestions and medium urgency.
    Alternatives: Retry the model call until valid JSON arrives.
    """

    raw = _extract_json_object(text)
    if raw is None:
        logger.warning("Tag analysis response was not valid JSON.")
        return StructuredResponse(suggestions=(), urgency=DEFAULT_URGENCY, valid=False)
    try:
        payload = TagAnalysisPayload.model_validate(raw)
    except PydanticValidationError as exc:
        logger.warning("Tag analysis response failed validation: %s", exc)
        return StructuredResponse(suggestions=(), urgency=DEFAULT_URGENCY, valid=False)
    suggestions: list[TagSuggestion] = []
    for item in payload.suggestions:
        try:
            suggestion = TagSuggestionPayload.model_validate(item)
        except PydanticValidationError:
            logger.debug("Skipping malformed suggestion: %s", item)
            continue
        suggestions.append(
            TagSuggestion(
                tag=suggestion.tag.strip().lower(),
                category=suggestion.category.strip().lower(),
                confidence=suggestion.confidence,
                reasoning=suggestion.reasoning,
            )
        )
    return StructuredResponse(suggestions=tuple(suggestions), urgency=payload.urgency, valid=True)


def parse_sectioned(text: str, include_greeting: bool = False) -> SectionedResponse:
    """Summary: Parse labeled summary sections with per-field defaults.

    Importance: A partially formatted response still produces a complete summary.
    Alternatives: Ask the model for JSON and fail on any deviation.
    """

    sections = _split_sections(text)
    missing = tuple(name for name in SECTION_NAMES if name not in sections)
    summary = sections.get("SUMMARY", "").strip() or DEFAULT_SUMMARY
    topics = tuple(
        topic.strip() for topic in sections.get("KEY_TOPICS", "").split(",") if topic.strip()
    )[:MAX_TOPICS]
    sentiment = _match_sentiment(sections.get("SENTIMENT", ""))
    highlights = _bullet_lines(sections.get("HIGHLIGHTS", ""))
    action_items = _bullet_lines(sections.get("ACTION_ITEMS", ""))
    greeting = None
    if include_greeting:
        greeting = sections.get("GREETING", "").strip() or default_greeting()
    return SectionedResponse(
        summary=summary,
        key_topics=topics or DEFAULT_TOPICS,
        highlights=highlights or DEFAULT_HIGHLIGHTS,
        sentiment=sentiment,
        action_items=action_items,
        greeting=greeting,
        missing=missing,
    )


def default_greeting() -> str:
    return random.choice(DEFAULT_GREETINGS)


def _match_sentiment(value: str) -> str:
    lowered = value.lower()
    for sentiment in SENTIMENTS:
        if sentiment in lowered:
            return sentiment
    return DEFAULT_SENTIMENT


def _extract_json_object(text: str) -> dict | None:
    cleaned = re.sub(r"```(?:json)?", "", text).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        raw = json.loads(cleaned[start : end + 1])
    except ValueError:
        return None
    return raw if isinstance(raw, dict) else None


def _split_sections(text: str) -> dict[str, str]:
    pattern = re.compile(rf"^\s*({'|'.join(SECTION_NAMES)})\s*:", re.MULTILINE)
    matches = list(pattern.finditer(text))
    sections: dict[str, str] = {}
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        sections[match.group(1)] = text[match.end() : end]
    return sections


def _bullet_lines(block: str) -> tuple[str, ...]:
    lines = []
    for raw_line in block.splitlines():
        line = raw_line.strip().lstrip("-*•").strip()
        if line:
            lines.append(line)
    return tuple(lines)
