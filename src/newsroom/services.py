"""Summary: Core application services for Newsroom.

Importance: Orchestrates ingestion, tagging, learning, and summary flows over shared storage.
Alternatives: Build a full service layer with a dependency injection framework.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable

from newsroom.ai import AiProvider, estimate_tokens, generate_async
from newsroom.classifier import RuleBasedTagger
from newsroom.errors import MessageNotFoundError, UpstreamError, ValidationError
from newsroom.models import (
    FEEDBACK_KINDS,
    TAG_CATEGORIES,
    ActivityMetrics,
    AnalysisResult,
    Channel,
    LearningMetrics,
    Message,
    MessageTag,
    Summary,
    Tag,
    TagCorrection,
    TagSuggestion,
    User,
    clamp_confidence,
)
from newsroom.responses import SectionedResponse, parse_sectioned, parse_structured
from newsroom.scoring import estimate_importance, importance_score
from newsroom.slack import MessageSource
from newsroom.squads import SquadResolver
from newsroom.storage.json_store import Document, StorageContext
from newsroom.storage.records import (
    channel_from_record,
    channel_to_record,
    correction_from_record,
    correction_to_record,
    message_from_record,
    message_tag_from_record,
    message_tag_to_record,
    message_to_record,
    summary_from_record,
    summary_to_record,
    tag_from_record,
    tag_to_record,
    user_from_record,
    user_to_record,
)

logger = logging.getLogger(__name__)

PROMPT_TEXT_LIMIT = 2000
CONTEXTUAL_TAG_CONFIDENCE = 0.7
LOW_CONFIDENCE_CUTOFF = 0.3
NEW_TAG_BASELINE = 0.5
RECENT_WINDOW = timedelta(days=30)

CORRECTION_WEIGHT = 0.8
FEEDBACK_WEIGHTS = {"positive": 0.9, "negative": 0.1}
FEEDBACK_MULTIPLIERS = {"positive": 1.05, "negative": 0.95}
REMOVED_MULTIPLIER = 0.9
KEPT_MULTIPLIER = 1.1
ADDED_MULTIPLIER = 1.2


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_date(value: str) -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc
    return value


def day_window(date: str | None) -> tuple[datetime, datetime]:
    """Summary: Resolve a UTC day window, defaulting to the last 24 hours.

    Importance: Keeps ingestion ranges consistent between API and CLI.
    Alternatives: Require explicit start and end timestamps.
    """

    if not date:
        end = _utc_now()
        return end - timedelta(days=1), end
    start = datetime.strptime(_validate_date(date), "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def _channel_label(message: Message) -> str:
    return message.channel_name or message.channel_id


def _load_messages(store: StorageContext) -> list[Message]:
    return [message_from_record(record) for record in store.messages.read().get("messages", [])]


def _save_message(store: StorageContext, message: Message) -> bool:
    """Summary: Replace a stored message record by id.

    Importance: Writes enrichment fields back without touching other messages.
    Alternatives: Store enrichment in a separate collection keyed by message id.
    """

    found = False

    def _apply(document: Document) -> Document:
        nonlocal found
        records = document.setdefault("messages", [])
        for index, record in enumerate(records):
            if record.get("id") == message.id:
                records[index] = message_to_record(message)
                found = True
                break
        return document

    store.messages.update(_apply)
    return found


def _find_message(store: StorageContext, message_id: str) -> Message | None:
    for message in _load_messages(store):
        if message.id == message_id:
            return message
    return None


def _messages_on(store: StorageContext, date: str) -> list[Message]:
    return [
        message
        for message in _load_messages(store)
        if message.timestamp.astimezone(timezone.utc).date().isoformat() == date
    ]


def _tag_confidences(store: StorageContext) -> dict[str, float]:
    return {
        record["name"]: float(record.get("confidence", NEW_TAG_BASELINE))
        for record in store.tags.read().get("tags", [])
        if record.get("name")
    }


def _next_tag_id(records: list[dict]) -> int:
    return max((int(record.get("id", 0)) for record in records), default=0) + 1


@dataclass(frozen=True)
class IngestionService:
    """Summary: Handles ingestion of channel messages from sources.

    Importance: Centralizes deduplication and denormalization before analysis.
    Alternatives: Ingest directly inside CLI commands.
    """

    store: StorageContext
    resolver: SquadResolver = field(default_factory=SquadResolver)

    def ingest_messages(self, messages: Iterable[Message]) -> int:
        """Summary: Store new messages, skipping ids that already exist.

        Importance: Re-ingesting a day keeps existing tags and scores intact.
        Alternatives: Upsert and overwrite enrichment on every ingest.
        """

        incoming = list(messages)
        inserted = 0

        def _apply(document: Document) -> Document:
            nonlocal inserted
            records = document.setdefault("messages", [])
            known = {record.get("id") for record in records}
            for message in incoming:
                if not message.id:
                    raise ValidationError("Messages require an id")
                if message.id in known:
                    continue
                if message.squad is None:
                    message = replace(message, squad=self.resolver.resolve(_channel_label(message)))
                records.append(message_to_record(message))
                known.add(message.id)
                inserted += 1
            return document

        self.store.messages.update(_apply)
        logger.info("Ingested %s new messages (%s received).", inserted, len(incoming))
        return inserted

    def ingest_channel(
        self, source: MessageSource, channel_id: str, start: datetime, end: datetime
    ) -> int:
        """Summary: Fetch one channel's window and store channel, authors, and messages.

        Importance: Gives messages the channel and author names squads resolve from.
        Alternatives: Store bare messages and resolve names lazily.
        """

        channel = source.fetch_channel(channel_id) or Channel(id=channel_id, name=channel_id)
        channel = replace(channel, squad=self.resolver.resolve(channel.name))
        self._upsert_channel(channel)
        fetched = source.fetch_messages(channel_id, start, end)
        users = self._fetch_users(source, {message.user_id for message in fetched})
        enriched = [
            replace(
                message,
                channel_name=channel.name,
                user_name=users[message.user_id].name if message.user_id in users else None,
                squad=channel.squad,
            )
            for message in fetched
        ]
        return self.ingest_messages(enriched)

    def scan_channels(
        self,
        source: MessageSource,
        channel_ids: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> dict[str, int]:
        """Summary: Ingest several channels, isolating per-channel failures.

        Importance: One unreachable channel must not block the daily scan.
        Alternatives: Abort the scan on the first failure.
        """

        results: dict[str, int] = {}
        for channel_id in channel_ids:
            try:
                results[channel_id] = self.ingest_channel(source, channel_id, start, end)
            except UpstreamError as exc:
                logger.warning("Skipping channel %s: %s", channel_id, exc)
                results[channel_id] = 0
        return results

    def get_message(self, message_id: str) -> Message:
        message = _find_message(self.store, message_id)
        if message is None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        return message

    def list_messages(
        self,
        limit: int = 50,
        channel_id: str | None = None,
        squad: str | None = None,
        min_importance: float | None = None,
    ) -> list[Message]:
        """Summary: List stored messages newest first with optional filters.

        Importance: Feeds dashboard message views.
        Alternatives: Return all messages and filter client-side.
        """

        messages = _load_messages(self.store)
        if channel_id:
            messages = [message for message in messages if message.channel_id == channel_id]
        if squad:
            members = self.resolver.directory.member_ids(squad) or [squad]
            messages = [message for message in messages if message.squad in members]
        if min_importance is not None:
            messages = [
                message
                for message in messages
                if message.importance is not None and message.importance >= min_importance
            ]
        messages.sort(key=lambda message: message.timestamp, reverse=True)
        return messages[:limit]

    def messages_for_date(self, date: str) -> list[Message]:
        """Summary: Return messages posted on a UTC calendar date.

        Importance: Defines the input set of daily summaries.
        Alternatives: Use a rolling 24-hour window.
        """

        return _messages_on(self.store, _validate_date(date))

    def list_channels(self) -> list[Channel]:
        return [
            channel_from_record(record)
            for record in self.store.channels.read().get("channels", [])
        ]

    def list_users(self) -> list[User]:
        return [user_from_record(record) for record in self.store.users.read().get("users", [])]

    def message_tags(self, message_id: str) -> list[MessageTag]:
        """Summary: Return tag associations recorded for a stored message.

        Importance: Shows which tags came from analysis and which from users.
        Alternatives: Rely on the denormalized tag list on the message.
        """

        self.get_message(message_id)
        return [
            message_tag_from_record(record)
            for record in self.store.associations.read().get("associations", [])
            if record.get("messageId") == message_id
        ]

    def _upsert_channel(self, channel: Channel) -> None:
        def _apply(document: Document) -> Document:
            records = [
                record for record in document.get("channels", []) if record.get("id") != channel.id
            ]
            records.append(channel_to_record(channel))
            document["channels"] = records
            return document

        self.store.channels.update(_apply)

    def _fetch_users(self, source: MessageSource, user_ids: set[str]) -> dict[str, User]:
        users: dict[str, User] = {}
        for user_id in sorted(user_ids):
            try:
                user = source.fetch_user(user_id)
            except UpstreamError as exc:
                logger.warning("Failed to fetch user %s: %s", user_id, exc)
                continue
            if user:
                users[user_id] = user
        if users:

            def _apply(document: Document) -> Document:
                records = [
                    record for record in document.get("users", []) if record.get("id") not in users
                ]
                records.extend(user_to_record(user) for user in users.values())
                document["users"] = records
                return document

            self.store.users.update(_apply)
        return users


@dataclass(frozen=True)
class LearningService:
    """Summary: Adjusts stored tag confidence from corrections and feedback.

    Importance: Lets tagging quality improve without retraining a model.
    Alternatives: Fine-tune the language model on corrected examples.
    """

    store: StorageContext
    tagger: RuleBasedTagger = field(default_factory=RuleBasedTagger)

    def record_correction(
        self,
        message_id: str,
        original_tags: list[str],
        corrected_tags: list[str],
        actor: str | None = None,
    ) -> TagCorrection:
        """Summary: Record a user correction and adjust tag confidence.

        Importance: Removed tags lose confidence, kept and added tags gain it.
        Alternatives: Only log corrections for offline review.
        """

        if not message_id:
            raise ValidationError("message_id is required")
        original = _normalize_tags(original_tags)
        corrected = _normalize_tags(corrected_tags)
        correction = TagCorrection(
            message_id=message_id,
            original_tags=tuple(original),
            corrected_tags=tuple(corrected),
            feedback="correction",
            confidence=CORRECTION_WEIGHT,
            timestamp=_utc_now(),
            actor=actor,
        )
        self._append_correction(correction)
        tags = self._apply_correction(original, corrected)
        self._update_message_tags(message_id, original, corrected, tags)
        logger.info(
            "Recorded correction for %s: %s -> %s", message_id, original, corrected
        )
        return correction

    def record_feedback(
        self, message_id: str, tags: list[str], feedback: str, actor: str | None = None
    ) -> TagCorrection:
        """Summary: Record positive or negative feedback on assigned tags.

        Importance: Lightweight signal that nudges confidence up or down.
        Alternatives: Require full corrections for every signal.
        """

        if not message_id:
            raise ValidationError("message_id is required")
        if feedback not in FEEDBACK_MULTIPLIERS:
            raise ValidationError("feedback must be 'positive' or 'negative'")
        names = _normalize_tags(tags)
        record = TagCorrection(
            message_id=message_id,
            original_tags=tuple(names),
            corrected_tags=tuple(names),
            feedback=feedback,
            confidence=FEEDBACK_WEIGHTS[feedback],
            timestamp=_utc_now(),
            actor=actor,
        )
        self._append_correction(record)
        multiplier = FEEDBACK_MULTIPLIERS[feedback]
        now = _utc_now().isoformat()

        def _apply(document: Document) -> Document:
            for tag in document.setdefault("tags", []):
                if tag.get("name") in names:
                    tag["confidence"] = clamp_confidence(float(tag["confidence"]) * multiplier)
                    tag["updatedAt"] = now
            return document

        self.store.tags.update(_apply)
        logger.info("Recorded %s feedback for %s on %s", feedback, message_id, names)
        return record

    def get_improved_suggestions(
        self, text: str, channel_name: str, original: list[str]
    ) -> list[str]:
        """Summary: Filter low-confidence tags and append contextual tags.

        Importance: Feeds learned confidence back into future analyses.
        Alternatives: Weight suggestions instead of dropping them.
        """

        confidences = _tag_confidences(self.store)
        improved: list[str] = []
        for name in original:
            if name in improved:
                continue
            if name in confidences and confidences[name] <= LOW_CONFIDENCE_CUTOFF:
                logger.debug("Dropping low-confidence tag %s", name)
                continue
            improved.append(name)
        for name in self.tagger.contextual_tags(text, channel_name):
            if name not in improved:
                improved.append(name)
        return improved

    def corrections(self) -> list[TagCorrection]:
        return [
            correction_from_record(record)
            for record in self.store.associations.read().get("corrections", [])
        ]

    def recent_corrections(self, limit: int = 50) -> list[TagCorrection]:
        records = sorted(self.corrections(), key=lambda item: item.timestamp, reverse=True)
        return records[:limit]

    def get_metrics(self) -> LearningMetrics:
        """Summary: Summarize correction and feedback history.

        Importance: Shows which tags users correct most and how feedback trends.
        Alternatives: Export raw records for external analysis.
        """

        records = self.corrections()
        removed: Counter[str] = Counter()
        stats = {"positive": 0, "negative": 0, "corrections": 0}
        for record in records:
            for tag in record.original_tags:
                if tag not in record.corrected_tags:
                    removed[tag] += 1
            if record.feedback == "correction":
                stats["corrections"] += 1
            elif record.feedback in stats:
                stats[record.feedback] += 1
        cutoff = _utc_now() - RECENT_WINDOW
        has_recent = any(record.timestamp > cutoff for record in records)
        accuracy = stats["positive"] / len(records) * 100 if records and has_recent else 0.0
        return LearningMetrics(
            total_corrections=len(records),
            accuracy_improvement=accuracy,
            most_corrected_tags=tuple(removed.most_common(10)),
            feedback_stats=stats,
        )

    def _append_correction(self, correction: TagCorrection) -> None:
        if correction.feedback not in FEEDBACK_KINDS:
            raise ValidationError(f"Unknown feedback kind {correction.feedback}")

        def _apply(document: Document) -> Document:
            document.setdefault("corrections", []).append(correction_to_record(correction))
            return document

        self.store.associations.update(_apply)

    def _apply_correction(self, original: list[str], corrected: list[str]) -> dict[str, Tag]:
        now = _utc_now()
        touched: dict[str, Tag] = {}

        def _apply(document: Document) -> Document:
            records = document.setdefault("tags", [])
            by_name = {record.get("name"): record for record in records}
            for name in original:
                if name not in corrected and name in by_name:
                    record = by_name[name]
                    record["confidence"] = clamp_confidence(
                        float(record["confidence"]) * REMOVED_MULTIPLIER
                    )
                    record["updatedAt"] = now.isoformat()
            for name in corrected:
                record = by_name.get(name)
                if record is None:
                    # Unknown tags added by a user start from the baseline as custom tags.
                    record = tag_to_record(
                        Tag(
                            id=_next_tag_id(records),
                            name=name,
                            category="custom",
                            confidence=NEW_TAG_BASELINE,
                            usage_count=0,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    records.append(record)
                    by_name[name] = record
                multiplier = KEPT_MULTIPLIER if name in original else ADDED_MULTIPLIER
                record["confidence"] = clamp_confidence(float(record["confidence"]) * multiplier)
                record["updatedAt"] = now.isoformat()
                touched[name] = tag_from_record(record)
            return document

        self.store.tags.update(_apply)
        return touched

    def _update_message_tags(
        self,
        message_id: str,
        original: list[str],
        corrected: list[str],
        tags: dict[str, Tag],
    ) -> None:
        stored = _find_message(self.store, message_id)
        if stored is None:
            return
        _save_message(self.store, replace(stored, tags=tuple(corrected)))
        now = _utc_now()
        added = [
            MessageTag(
                message_id=message_id,
                tag_id=tags[name].id,
                tag_name=name,
                confidence=tags[name].confidence,
                is_manual=True,
                created_at=now,
            )
            for name in corrected
            if name not in original and name in tags
        ]
        if added:

            def _apply(document: Document) -> Document:
                document.setdefault("associations", []).extend(
                    message_tag_to_record(item) for item in added
                )
                return document

            self.store.associations.update(_apply)


def _normalize_tags(tags: Iterable[str]) -> list[str]:
    names: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be strings")
        name = tag.strip().lower()
        if name and name not in names:
            names.append(name)
    return names


@dataclass(frozen=True)
class TaggingService:
    """Summary: Orchestrates tag suggestion, learning filters, and importance scoring.

    Importance: Core enrichment step behind dashboards and summaries.
    Alternatives: Tag messages with keyword rules only.
    """

    store: StorageContext
    provider: AiProvider
    learning: LearningService
    resolver: SquadResolver = field(default_factory=SquadResolver)
    batch_size: int = 5
    batch_delay_seconds: float = 1.0
    min_confidence: float = 0.6
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def analyze_message(self, message: Message) -> AnalysisResult:
        """Summary: Analyze one message and persist its tags and importance.

        Importance: Produces the enrichment every other view depends on.
        Alternatives: Analyze lazily when a message is first viewed.
        """

        if not message.id:
            raise ValidationError("Message id is required for analysis")
        started = time.perf_counter()
        channel = _channel_label(message)
        squads = self.resolver.squad_context(channel)
        prompt = self._build_prompt(message, channel, squads)
        text, _ = await generate_async(self.provider, prompt, "tag_analysis")
        parsed = parse_structured(text)
        kept = [
            suggestion
            for suggestion in parsed.suggestions
            if suggestion.confidence > self.min_confidence
        ]
        names = self.learning.get_improved_suggestions(
            message.text, channel, [suggestion.tag for suggestion in kept]
        )
        by_name: dict[str, TagSuggestion] = {}
        for suggestion in kept:
            by_name.setdefault(suggestion.tag, suggestion)
        final = [
            by_name.get(name)
            or TagSuggestion(tag=name, category="keyword", confidence=CONTEXTUAL_TAG_CONFIDENCE)
            for name in names
        ]
        # A tag may arrive under several categories; scoring sees all of them.
        scored = [suggestion for suggestion in kept if suggestion.tag in names]
        scored.extend(suggestion for suggestion in final if suggestion.tag not in by_name)
        tags = self._upsert_tags(final)
        stored = _find_message(self.store, message.id)
        associations = self._append_associations(message.id, final, tags) if stored else ()
        importance = importance_score(message, scored, self.resolver.multiplier(channel))
        if stored:
            _save_message(
                self.store,
                replace(
                    stored,
                    tags=tuple(names),
                    importance=importance,
                    squad=self.resolver.resolve(channel),
                ),
            )
        processing_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Analyzed %s: %s tags, importance %.2f, urgency %s",
            message.id,
            len(names),
            importance,
            parsed.urgency,
        )
        return AnalysisResult(
            message_id=message.id,
            tags=associations,
            tag_names=tuple(names),
            importance=importance,
            urgency=parsed.urgency,
            processing_ms=processing_ms,
        )

    async def analyze_messages(self, messages: list[Message]) -> list[AnalysisResult]:
        """Summary: Analyze messages in rate-limited concurrent batches.

        Importance: Returns exactly one result per input, in input order.
        Alternatives: Analyze sequentially and stop on the first failure.
        """

        results: list[AnalysisResult] = []
        size = max(1, self.batch_size)
        for offset in range(0, len(messages), size):
            batch = messages[offset : offset + size]
            outcomes = await asyncio.gather(
                *(self.analyze_message(message) for message in batch), return_exceptions=True
            )
            for message, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.warning("Analysis failed for %s: %s", message.id, outcome)
                    results.append(AnalysisResult.fallback(message.id))
                else:
                    results.append(outcome)
            if offset + size < len(messages):
                await self.sleep(self.batch_delay_seconds)
        return results

    async def analyze_stored(
        self, limit: int = 50, only_untagged: bool = True
    ) -> list[AnalysisResult]:
        """Summary: Analyze stored messages, oldest first.

        Importance: Backfills enrichment after ingestion runs.
        Alternatives: Analyze inline during ingestion.
        """

        messages = _load_messages(self.store)
        if only_untagged:
            messages = [message for message in messages if message.importance is None]
        messages.sort(key=lambda message: message.timestamp)
        return await self.analyze_messages(messages[:limit])

    def _build_prompt(self, message: Message, channel: str, squads: list[str]) -> str:
        known_tags = [tag.name for tag in self.resolver.directory.tags_for_squad(squads[0])]
        text = message.text[:PROMPT_TEXT_LIMIT].replace("\n", " ")
        lines = [
            "Analyze this Slack message and suggest tags for a product operations dashboard.",
            f"Channel: #{channel}",
            f"Author: {message.user_name or message.user_id}",
            f"Squad context: {', '.join(squads)}",
        ]
        if known_tags:
            lines.append(f"Known squad tags: {', '.join(known_tags)}")
        lines.append(f"Message: {text}")
        lines.append(
            'Respond with JSON only: {"suggestions": [{"tag": "name", "category": '
            '"keyword|person|squad|custom|urgency|type", "confidence": 0.0, '
            '"reasoning": "why"}], "urgencyLevel": "low|medium|high|critical"}'
        )
        return "\n".join(lines)

    def _upsert_tags(self, suggestions: list[TagSuggestion]) -> dict[str, Tag]:
        now = _utc_now()
        tags: dict[str, Tag] = {}

        def _apply(document: Document) -> Document:
            records = document.setdefault("tags", [])
            by_name = {record.get("name"): record for record in records}
            for suggestion in suggestions:
                record = by_name.get(suggestion.tag)
                if record is None:
                    category = suggestion.category if suggestion.category in TAG_CATEGORIES else "keyword"
                    record = tag_to_record(
                        Tag(
                            id=_next_tag_id(records),
                            name=suggestion.tag,
                            category=category,
                            confidence=clamp_confidence(suggestion.confidence),
                            usage_count=1,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    records.append(record)
                    by_name[suggestion.tag] = record
                else:
                    record["usageCount"] = int(record.get("usageCount", 0)) + 1
                    record["confidence"] = clamp_confidence(
                        (float(record["confidence"]) + suggestion.confidence) / 2
                    )
                    record["updatedAt"] = now.isoformat()
                tags[suggestion.tag] = tag_from_record(record)
            return document

        self.store.tags.update(_apply)
        return tags

    def _append_associations(
        self, message_id: str, suggestions: list[TagSuggestion], tags: dict[str, Tag]
    ) -> tuple[MessageTag, ...]:
        now = _utc_now()
        associations = tuple(
            MessageTag(
                message_id=message_id,
                tag_id=tags[suggestion.tag].id,
                tag_name=suggestion.tag,
                confidence=clamp_confidence(suggestion.confidence),
                is_manual=False,
                created_at=now,
            )
            for suggestion in suggestions
            if suggestion.tag in tags
        )

        def _apply(document: Document) -> Document:
            document.setdefault("associations", []).extend(
                message_tag_to_record(item) for item in associations
            )
            return document

        if associations:
            self.store.associations.update(_apply)
        return associations


@dataclass(frozen=True)
class SummaryService:
    """Summary: Generates and stores daily executive summaries.

    Importance: Turns a day of channel traffic into a readable briefing.
    Alternatives: Show raw message lists without summarization.
    """

    store: StorageContext
    provider: AiProvider
    resolver: SquadResolver = field(default_factory=SquadResolver)
    excerpt_limit: int = 10

    async def generate_daily_summary(
        self,
        date: str,
        squad: str | None = None,
        include_greeting: bool = False,
        messages: list[Message] | None = None,
    ) -> Summary:
        """Summary: Build, persist, and return the summary for a (date, squad) key.

        Importance: Always yields a valid summary unless there is nothing to summarize.
        Alternatives: Fail the request whenever the model output is malformed.
        """

        _validate_date(date)
        if messages is None:
            messages = _messages_on(self.store, date)
        labeled = [(self._squad_of(message), message) for message in messages]
        if squad:
            members = self.resolver.directory.member_ids(squad) or [squad]
            labeled = [(label, message) for label, message in labeled if label in members]
        if not labeled:
            raise UpstreamError(f"No messages to summarize for {date}")

        groups: dict[str, list[Message]] = {}
        for label, message in labeled:
            groups.setdefault(label, []).append(message)
        excerpts = {
            label: sorted(items, key=estimate_importance, reverse=True)[: self.excerpt_limit]
            for label, items in groups.items()
        }

        selected = [message for _, message in labeled]
        cache_key = (
            f"summary_{date}_{'_'.join(sorted(message.id for message in selected))}"
            f"_{str(include_greeting).lower()}"
        )
        parsed, tokens_used = await self._summarize(
            cache_key, self._build_prompt(date, squad, excerpts, include_greeting), include_greeting
        )

        now = _utc_now()
        activity = ActivityMetrics(
            message_count=len(selected),
            participant_count=len({message.user_id for message in selected}),
            channel_count=len({message.channel_id for message in selected}),
            messages_by_squad={label: len(items) for label, items in groups.items()},
        )
        summary = Summary(
            id=f"summary_{date}_{squad or 'all'}",
            date=date,
            squad=squad,
            title=self._title(date, squad),
            content=parsed.summary,
            greeting=parsed.greeting,
            key_topics=parsed.key_topics,
            highlights=parsed.highlights,
            action_items=parsed.action_items,
            sentiment=parsed.sentiment,
            activity=activity,
            message_count=len(selected),
            participants=tuple(
                sorted({message.user_name or message.user_id for message in selected})
            ),
            channels=tuple(sorted({_channel_label(message) for message in selected})),
            squads_analyzed=tuple(sorted(groups)),
            tokens_used=tokens_used,
            created_at=now,
            updated_at=now,
        )
        return self._persist(summary)

    def get_summary(self, date: str, squad: str | None = None) -> Summary | None:
        summary_id = f"summary_{_validate_date(date)}_{squad or 'all'}"
        for record in self.store.summaries.read().get("summaries", []):
            if record.get("id") == summary_id:
                return summary_from_record(record)
        return None

    def list_summaries(
        self,
        date: str | None = None,
        squad: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Summary]:
        """Summary: List stored summaries newest first with optional filters.

        Importance: Supports the summary history view.
        Alternatives: Return only the latest summary.
        """

        summaries = [
            summary_from_record(record)
            for record in self.store.summaries.read().get("summaries", [])
        ]
        if date:
            summaries = [summary for summary in summaries if summary.date == date]
        if squad:
            summaries = [summary for summary in summaries if summary.squad == squad]
        summaries.sort(key=lambda summary: (summary.date, summary.updated_at), reverse=True)
        return summaries[offset : offset + limit]

    async def _summarize(
        self, cache_key: str, prompt: str, include_greeting: bool
    ) -> tuple[SectionedResponse, int]:
        cached = self.store.cache.get(cache_key)
        if isinstance(cached, dict):
            logger.info("Summary cache hit for %s", cache_key)
            return _sectioned_from_cache(cached), int(cached.get("tokensUsed", 0))
        try:
            text, _ = await generate_async(self.provider, prompt, "daily_summary")
        except UpstreamError as exc:
            logger.warning("Summary generation degraded to defaults: %s", exc)
            return parse_sectioned("", include_greeting), 0
        parsed = parse_sectioned(text, include_greeting)
        if parsed.missing:
            logger.debug("Summary response missing sections: %s", parsed.missing)
        tokens_used = estimate_tokens(prompt) + estimate_tokens(text)
        self.store.cache.put(cache_key, _sectioned_to_cache(parsed, tokens_used))
        return parsed, tokens_used

    def _persist(self, summary: Summary) -> Summary:
        result = summary

        def _apply(document: Document) -> Document:
            nonlocal result
            records = document.setdefault("summaries", [])
            for index, record in enumerate(records):
                if record.get("id") == summary.id:
                    previous = summary_from_record(record)
                    result = replace(summary, created_at=previous.created_at)
                    records[index] = summary_to_record(result)
                    return document
            records.append(summary_to_record(summary))
            return document

        self.store.summaries.update(_apply)
        logger.info("Stored summary %s (%s messages).", result.id, result.message_count)
        return result

    def _squad_of(self, message: Message) -> str:
        return message.squad or self.resolver.resolve(_channel_label(message))

    def _title(self, date: str, squad: str | None) -> str:
        if not squad:
            return f"Daily Summary - {date}"
        config = self.resolver.directory.get_squad(squad)
        return f"Daily Summary - {date} ({config.name if config else squad})"

    def _build_prompt(
        self,
        date: str,
        squad: str | None,
        excerpts: dict[str, list[Message]],
        include_greeting: bool,
    ) -> str:
        scope = f" for the {squad} squad" if squad else ""
        lines = [f"Summarize the following Slack messages from {date}{scope}."]
        if include_greeting:
            lines.append("Include a morning greeting at the beginning.")
        lines.append("")
        lines.append("Messages:")
        for label in sorted(excerpts):
            lines.append(f"## {label} ({len(excerpts[label])} messages)")
            for message in excerpts[label]:
                author = message.user_name or message.user_id
                text = message.text[:300].replace("\n", " ")
                lines.append(f"- [#{_channel_label(message)}] {author}: {text}")
        lines.append("")
        lines.append("Format your response as:")
        if include_greeting:
            lines.append("GREETING: morning greeting")
        lines.extend(
            [
                "SUMMARY: main summary",
                "KEY_TOPICS: comma-separated list of key topics",
                "SENTIMENT: positive/neutral/negative",
                "HIGHLIGHTS: bullet points of important items",
                "ACTION_ITEMS: bullet points of follow-ups",
            ]
        )
        return "\n".join(lines)


def _sectioned_to_cache(parsed: SectionedResponse, tokens_used: int) -> dict:
    return {
        "summary": parsed.summary,
        "greeting": parsed.greeting,
        "keyTopics": list(parsed.key_topics),
        "highlights": list(parsed.highlights),
        "actionItems": list(parsed.action_items),
        "sentiment": parsed.sentiment,
        "tokensUsed": tokens_used,
    }


def _sectioned_from_cache(payload: dict) -> SectionedResponse:
    defaults = SectionedResponse()
    return SectionedResponse(
        summary=payload.get("summary") or defaults.summary,
        key_topics=tuple(payload.get("keyTopics") or defaults.key_topics),
        highlights=tuple(payload.get("highlights") or defaults.highlights),
        sentiment=payload.get("sentiment") or defaults.sentiment,
        action_items=tuple(payload.get("actionItems") or ()),
        greeting=payload.get("greeting"),
    )


@dataclass(frozen=True)
class StatsService:
    """Summary: Aggregates counts across collections for dashboards.

    Importance: Gives operators a quick health view of the workspace.
    Alternatives: Compute stats in the frontend from raw documents.
    """

    store: StorageContext

    def snapshot(self) -> dict[str, int]:
        associations = self.store.associations.read()
        return {
            "messages": len(self.store.messages.read().get("messages", [])),
            "users": len(self.store.users.read().get("users", [])),
            "channels": len(self.store.channels.read().get("channels", [])),
            "tags": len(self.store.tags.read().get("tags", [])),
            "summaries": len(self.store.summaries.read().get("summaries", [])),
            "associations": len(associations.get("associations", [])),
            "corrections": len(associations.get("corrections", [])),
            "cache_entries": len(self.store.cache.read().get("cache", {})),
        }

    def tag_statistics(self) -> dict:
        """Summary: Report total tags, the most used tags, and counts per category.

        Importance: Surfaces which topics dominate channel traffic.
        Alternatives: Query tag usage per message on demand.
        """

        tags = [tag_from_record(record) for record in self.store.tags.read().get("tags", [])]
        top = sorted(tags, key=lambda tag: tag.usage_count, reverse=True)[:10]
        by_category = Counter(tag.category for tag in tags)
        return {
            "total_tags": len(tags),
            "top_tags": [
                {"name": tag.name, "usage_count": tag.usage_count, "confidence": tag.confidence}
                for tag in top
            ],
            "by_category": dict(by_category),
        }
