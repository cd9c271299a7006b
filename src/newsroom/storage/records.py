"""Summary: Conversions between domain dataclasses and JSON records.

Importance: Keeps the on-disk shape in one place for every collection.
Alternatives: Serialize dataclasses with asdict and accept snake_case keys everywhere.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from newsroom.models import (
    ActivityMetrics,
    Channel,
    Message,
    MessageTag,
    Reaction,
    Summary,
    Tag,
    TagCorrection,
    User,
)

Record = dict[str, Any]


def parse_timestamp(value: str | None) -> datetime:
    """Summary: Parse an ISO timestamp into an aware UTC datetime.

    Importance: Tolerates naive timestamps written by older tools.
    Alternatives: Store epoch seconds to avoid timezone handling.
    """

    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def message_to_record(message: Message) -> Record:
    return {
        "id": message.id,
        "channelId": message.channel_id,
        "channelName": message.channel_name,
        "userId": message.user_id,
        "userName": message.user_name,
        "text": message.text,
        "timestamp": message.timestamp.isoformat(),
        "threadId": message.thread_id,
        "reactions": [
            {"name": reaction.name, "count": reaction.count, "users": list(reaction.users)}
            for reaction in message.reactions
        ],
        "tags": list(message.tags),
        "importance": message.importance,
        "squad": message.squad,
    }


def message_from_record(record: Record) -> Message:
    return Message(
        id=record["id"],
        channel_id=record.get("channelId", ""),
        user_id=record.get("userId", ""),
        text=record.get("text", ""),
        timestamp=parse_timestamp(record.get("timestamp")),
        reactions=tuple(
            Reaction(
                name=item.get("name", ""),
                count=int(item.get("count", 0)),
                users=tuple(item.get("users", [])),
            )
            for item in record.get("reactions", [])
        ),
        thread_id=record.get("threadId"),
        tags=tuple(record.get("tags", [])),
        importance=record.get("importance"),
        squad=record.get("squad"),
        channel_name=record.get("channelName"),
        user_name=record.get("userName"),
    )


def channel_to_record(channel: Channel) -> Record:
    return {
        "id": channel.id,
        "name": channel.name,
        "isPrivate": channel.is_private,
        "memberCount": channel.member_count,
        "squad": channel.squad,
    }


def channel_from_record(record: Record) -> Channel:
    return Channel(
        id=record["id"],
        name=record.get("name", record["id"]),
        is_private=bool(record.get("isPrivate", False)),
        member_count=int(record.get("memberCount", 0)),
        squad=record.get("squad"),
    )


def user_to_record(user: User) -> Record:
    return {
        "id": user.id,
        "name": user.name,
        "realName": user.real_name,
        "email": user.email,
        "squad": user.squad,
    }


def user_from_record(record: Record) -> User:
    return User(
        id=record["id"],
        name=record.get("name", record["id"]),
        real_name=record.get("realName"),
        email=record.get("email"),
        squad=record.get("squad"),
    )


def tag_to_record(tag: Tag) -> Record:
    return {
        "id": tag.id,
        "name": tag.name,
        "category": tag.category,
        "confidence": tag.confidence,
        "usageCount": tag.usage_count,
        "createdAt": tag.created_at.isoformat(),
        "updatedAt": tag.updated_at.isoformat(),
    }


def tag_from_record(record: Record) -> Tag:
    return Tag(
        id=int(record["id"]),
        name=record["name"],
        category=record.get("category", "keyword"),
        confidence=float(record.get("confidence", 0.5)),
        usage_count=int(record.get("usageCount", 0)),
        created_at=parse_timestamp(record.get("createdAt")),
        updated_at=parse_timestamp(record.get("updatedAt")),
    )


def message_tag_to_record(message_tag: MessageTag) -> Record:
    return {
        "messageId": message_tag.message_id,
        "tagId": message_tag.tag_id,
        "tagName": message_tag.tag_name,
        "confidence": message_tag.confidence,
        "isManual": message_tag.is_manual,
        "createdAt": message_tag.created_at.isoformat(),
    }


def message_tag_from_record(record: Record) -> MessageTag:
    return MessageTag(
        message_id=record["messageId"],
        tag_id=int(record["tagId"]),
        tag_name=record.get("tagName", ""),
        confidence=float(record.get("confidence", 0.0)),
        is_manual=bool(record.get("isManual", False)),
        created_at=parse_timestamp(record.get("createdAt")),
    )


def correction_to_record(correction: TagCorrection) -> Record:
    return {
        "messageId": correction.message_id,
        "originalTags": list(correction.original_tags),
        "correctedTags": list(correction.corrected_tags),
        "feedback": correction.feedback,
        "confidence": correction.confidence,
        "timestamp": correction.timestamp.isoformat(),
        "userId": correction.actor,
    }


def correction_from_record(record: Record) -> TagCorrection:
    return TagCorrection(
        message_id=record["messageId"],
        original_tags=tuple(record.get("originalTags", [])),
        corrected_tags=tuple(record.get("correctedTags", [])),
        feedback=record.get("feedback", "correction"),
        confidence=float(record.get("confidence", 0.0)),
        timestamp=parse_timestamp(record.get("timestamp")),
        actor=record.get("userId"),
    )


def summary_to_record(summary: Summary) -> Record:
    return {
        "id": summary.id,
        "date": summary.date,
        "squad": summary.squad,
        "title": summary.title,
        "content": summary.content,
        "greeting": summary.greeting,
        "keyTopics": list(summary.key_topics),
        "highlights": list(summary.highlights),
        "actionItems": list(summary.action_items),
        "sentiment": summary.sentiment,
        "activity": {
            "messageCount": summary.activity.message_count,
            "participantCount": summary.activity.participant_count,
            "channelCount": summary.activity.channel_count,
            "messagesBySquad": dict(summary.activity.messages_by_squad),
        },
        "messageCount": summary.message_count,
        "participants": list(summary.participants),
        "channels": list(summary.channels),
        "squadsAnalyzed": list(summary.squads_analyzed),
        "tokensUsed": summary.tokens_used,
        "createdAt": summary.created_at.isoformat(),
        "updatedAt": summary.updated_at.isoformat(),
    }


def summary_from_record(record: Record) -> Summary:
    activity = record.get("activity") or {}
    return Summary(
        id=record["id"],
        date=record["date"],
        squad=record.get("squad"),
        title=record.get("title", ""),
        content=record.get("content", ""),
        greeting=record.get("greeting"),
        key_topics=tuple(record.get("keyTopics", [])),
        highlights=tuple(record.get("highlights", [])),
        action_items=tuple(record.get("actionItems", [])),
        sentiment=record.get("sentiment", "neutral"),
        activity=ActivityMetrics(
            message_count=int(activity.get("messageCount", 0)),
            participant_count=int(activity.get("participantCount", 0)),
            channel_count=int(activity.get("channelCount", 0)),
            messages_by_squad=dict(activity.get("messagesBySquad", {})),
        ),
        message_count=int(record.get("messageCount", 0)),
        participants=tuple(record.get("participants", [])),
        channels=tuple(record.get("channels", [])),
        squads_analyzed=tuple(record.get("squadsAnalyzed", [])),
        tokens_used=int(record.get("tokensUsed", 0)),
        created_at=parse_timestamp(record.get("createdAt")),
        updated_at=parse_timestamp(record.get("updatedAt")),
    )
