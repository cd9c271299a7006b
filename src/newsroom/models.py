"""Summary: Domain model dataclasses for Newsroom.

Importance: Defines the core entities shared across services and storage.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

TAG_CATEGORIES = ("keyword", "person", "squad", "custom")
URGENCY_LEVELS = ("low", "medium", "high", "critical")
FEEDBACK_KINDS = ("positive", "negative", "correction")
SENTIMENTS = ("positive", "neutral", "negative")

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0


def clamp_confidence(value: float) -> float:
    """Summary: Clamp a confidence value into the allowed range.

    Importance: Keeps every stored confidence within [0.1, 1.0].
    Alternatives: Validate on write and reject out-of-range values.
    """

    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, value))


def message_id_for(channel_id: str, ts: str) -> str:
    """Summary: Derive the stable message identifier from channel and timestamp.

    Importance: Makes re-ingestion of the same Slack message idempotent.
    Alternatives: Use random UUIDs and deduplicate on content.
    """

    return f"{channel_id}.{ts}"


@dataclass(frozen=True)
class Reaction:
    """Summary: Emoji reaction attached to a message.

    Importance: Reaction volume and variety feed the importance score.
    Alternatives: Store only a total reaction count.
    """

    name: str
    count: int
    users: tuple[str, ...] = ()


@dataclass(frozen=True)
class Message:
    """Summary: Represents a channel message with enrichment fields.

    Importance: Core unit for ingestion, tagging, scoring, and summaries.
    Alternatives: Store raw Slack payloads and enrich on read.
    """

    id: str
    channel_id: str
    user_id: str
    text: str
    timestamp: datetime
    reactions: tuple[Reaction, ...] = ()
    thread_id: str | None = None
    tags: tuple[str, ...] = ()
    importance: float | None = None
    squad: str | None = None
    channel_name: str | None = None
    user_name: str | None = None


@dataclass(frozen=True)
class Channel:
    """Summary: Channel metadata captured from the message source.

    Importance: Supplies names for squad resolution and dashboard views.
    Alternatives: Resolve channel names from the source on every request.
    """

    id: str
    name: str
    is_private: bool = False
    member_count: int = 0
    squad: str | None = None


@dataclass(frozen=True)
class User:
    """Summary: Message author identity.

    Importance: Lets summaries and prompts refer to people by name.
    Alternatives: Keep only opaque Slack user IDs.
    """

    id: str
    name: str
    real_name: str | None = None
    email: str | None = None
    squad: str | None = None


@dataclass(frozen=True)
class Tag:
    """Summary: Named tag with a learned confidence.

    Importance: Confidence drives suggestion filtering and improves with feedback.
    Alternatives: Keep tags as free-form strings without metadata.
    """

    id: int
    name: str
    category: str
    confidence: float
    usage_count: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class MessageTag:
    """Summary: Association between a message and a tag.

    Importance: Records the confidence and origin of each assignment.
    Alternatives: Store tag names directly on messages only.
    """

    message_id: str
    tag_id: int
    tag_name: str
    confidence: float
    is_manual: bool
    created_at: datetime


@dataclass(frozen=True)
class TagCorrection:
    """Summary: Append-only record of a correction or feedback event.

    Importance: Provides the history used for learning metrics.
    Alternatives: Keep only aggregated counters.
    """

    message_id: str
    original_tags: tuple[str, ...]
    corrected_tags: tuple[str, ...]
    feedback: str
    confidence: float
    timestamp: datetime
    actor: str | None = None


@dataclass(frozen=True)
class TagSuggestion:
    """Summary: Tag proposed by the language model.

    Importance: Intermediate shape between raw model output and stored tags.
    Alternatives: Pass provider JSON dictionaries around directly.
    """

    tag: str
    category: str
    confidence: float
    reasoning: str | None = None


@dataclass(frozen=True)
class AnalysisResult:
    """Summary: Outcome of analyzing one message.

    Importance: Gives batch callers exactly one uniform result per input.
    Alternatives: Return partial results and a separate error list.
    """

    message_id: str
    tags: tuple[MessageTag, ...]
    tag_names: tuple[str, ...]
    importance: float
    urgency: str
    processing_ms: int

    @staticmethod
    def fallback(message_id: str) -> "AnalysisResult":
        """Summary: Build the fixed result used when analysis fails.

        Importance: Keeps one failed message from failing its whole batch.
        Alternatives: Drop failed messages from the results.
        """

        return AnalysisResult(
            message_id=message_id,
            tags=(),
            tag_names=(),
            importance=0.3,
            urgency="low",
            processing_ms=0,
        )


@dataclass(frozen=True)
class ChannelConfig:
    """Summary: Channel owned by a squad.

    Importance: Anchors explicit channel-to-squad ownership.
    Alternatives: Rely only on channel name patterns.
    """

    id: str
    name: str
    is_primary: bool = False
    description: str | None = None
    related_channels: tuple[str, ...] = ()


@dataclass(frozen=True)
class TagConfig:
    """Summary: Tag owned by a squad.

    Importance: Seeds squad-specific vocabulary for prompts and dashboards.
    Alternatives: Derive squad tags from usage only.
    """

    id: str
    name: str
    category: str = "keyword"
    confidence: float = 0.8


@dataclass(frozen=True)
class PersonConfig:
    """Summary: Person belonging to a squad.

    Importance: Allows people-based squad views.
    Alternatives: Infer membership from channel participation.
    """

    id: str
    name: str
    email: str | None = None
    role: str | None = None
    common_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class SquadConfig:
    """Summary: Static squad definition with owned channels, tags, and people.

    Importance: Scopes dashboards and summaries to teams.
    Alternatives: Store squads in the document store and edit them at runtime.
    """

    id: str
    name: str
    description: str | None = None
    parent_squad: str | None = None
    channels: tuple[ChannelConfig, ...] = ()
    tags: tuple[TagConfig, ...] = ()
    people: tuple[PersonConfig, ...] = ()
    subsquads: tuple[str, ...] = ()


@dataclass(frozen=True)
class ActivityMetrics:
    """Summary: Locally computed activity numbers for a summary.

    Importance: Guarantees summaries carry metrics even when the model fails.
    Alternatives: Ask the model to count activity.
    """

    message_count: int
    participant_count: int
    channel_count: int
    messages_by_squad: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Summary:
    """Summary: Daily executive summary for one (date, squad) key.

    Importance: Primary artifact shown on the operations dashboard.
    Alternatives: Store raw model output without structure.
    """

    id: str
    date: str
    squad: str | None
    title: str
    content: str
    greeting: str | None
    key_topics: tuple[str, ...]
    highlights: tuple[str, ...]
    action_items: tuple[str, ...]
    sentiment: str
    activity: ActivityMetrics
    message_count: int
    participants: tuple[str, ...]
    channels: tuple[str, ...]
    squads_analyzed: tuple[str, ...]
    tokens_used: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class LearningMetrics:
    """Summary: Aggregated view of correction and feedback history.

    Importance: Shows whether tagging quality is improving.
    Alternatives: Compute metrics ad hoc in the dashboard.
    """

    total_corrections: int
    accuracy_improvement: float
    most_corrected_tags: tuple[tuple[str, int], ...]
    feedback_stats: dict[str, int]
