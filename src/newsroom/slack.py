"""Summary: Slack message source interfaces and implementations.

Importance: Encapsulates read-only ingestion from Slack workspaces.
Alternatives: Rely solely on the Slack SDK with vendor lock-in.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from newsroom.errors import UpstreamError
from newsroom.models import Channel, Message, Reaction, User, message_id_for

logger = logging.getLogger(__name__)


class MessageSource(ABC):
    """Summary: Abstract interface for channel message retrieval.

    Importance: Standardizes retrieval across the Slack API and fixtures.
    Alternatives: Use the Slack client directly in ingestion flows.
    """

    @abstractmethod
    def fetch_messages(self, channel_id: str, start: datetime, end: datetime) -> list[Message]:
        """Summary: Fetch messages posted in a channel within a time window.

        Importance: Drives ingestion workflows across sources.
        Alternatives: Fetch messages by cursor instead of time range.
        """

    @abstractmethod
    def fetch_channel(self, channel_id: str) -> Channel | None:
        """Summary: Fetch channel metadata.

        Importance: Supplies the channel name used for squad resolution.
        Alternatives: Require channel names in configuration.
        """

    @abstractmethod
    def fetch_user(self, user_id: str) -> User | None:
        """Summary: Fetch a workspace member.

        Importance: Lets prompts and summaries show author names.
        Alternatives: Display raw user ids.
        """


class FixtureMessageSource(MessageSource):
    """Summary: Loads Slack-shaped channels, users, and messages from a JSON fixture.

    Importance: Supports offline testing and demos.
    Alternatives: Record and replay real API responses.
    """

    def __init__(self, fixture_path: Path) -> None:
        self._fixture_path = fixture_path

    def fetch_messages(self, channel_id: str, start: datetime, end: datetime) -> list[Message]:
        """Summary: Return fixture messages for the channel inside the window.

        Importance: Mirrors the API source's oldest/latest filtering.
        Alternatives: Ignore the window and return every fixture message.
        """

        data = self._load()
        messages: list[Message] = []
        for item in data.get("messages", {}).get(channel_id, []):
            message = parse_slack_message(item, channel_id)
            if message and start <= message.timestamp <= end:
                messages.append(message)
        return messages

    def fetch_channel(self, channel_id: str) -> Channel | None:
        for item in self._load().get("channels", []):
            if item.get("id") == channel_id:
                return _parse_channel(item)
        return None

    def fetch_user(self, user_id: str) -> User | None:
        for item in self._load().get("users", []):
            if item.get("id") == user_id:
                return _parse_user(item)
        return None

    def channel_ids(self) -> list[str]:
        return [item["id"] for item in self._load().get("channels", []) if item.get("id")]

    def _load(self) -> dict[str, Any]:
        try:
            data = json.loads(self._fixture_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise UpstreamError(f"Failed to load Slack fixture {self._fixture_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamError("Slack fixture must be a JSON object")
        return data


class SlackApiMessageSource(MessageSource):
    """Summary: Reads channel history via the Slack Web API using a bot token.

    Importance: Provides real-world ingestion for monitored channels.
    Alternatives: Use the Events API and push ingestion.
    """

    def __init__(self, token: str, base_url: str = "https://slack.com/api") -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")

    def fetch_messages(self, channel_id: str, start: datetime, end: datetime) -> list[Message]:
        """Summary: Fetch channel history between two instants.

        Importance: Captures the day's conversation for analysis and summaries.
        Alternatives: Page through full history and filter locally.
        """

        payload = self._get(
            "conversations.history",
            {
                "channel": channel_id,
                "oldest": str(int(start.timestamp())),
                "latest": str(int(end.timestamp())),
                "limit": "1000",
            },
        )
        messages: list[Message] = []
        for item in payload.get("messages", []):
            message = parse_slack_message(item, channel_id)
            if message:
                messages.append(message)
        return messages

    def fetch_channel(self, channel_id: str) -> Channel | None:
        payload = self._get("conversations.info", {"channel": channel_id})
        channel = payload.get("channel")
        return _parse_channel(channel) if channel else None

    def fetch_user(self, user_id: str) -> User | None:
        payload = self._get("users.info", {"user": user_id})
        user = payload.get("user")
        return _parse_user(user) if user else None

    def _get(self, method: str, params: dict[str, str]) -> dict[str, Any]:
        """Summary: Call a Slack Web API method and unwrap its envelope.

        Importance: Encapsulates Slack calls without new dependencies.
        Alternatives: Use slack_sdk's WebClient.
        """

        url = f"{self._base_url}/{method}?{urllib.parse.urlencode(params)}"
        request = urllib.request.Request(
            url,
            headers={"Authorization": f"Bearer {self._token}"},
            method="GET",
        )
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8")
            raise UpstreamError(f"Slack {method} failed: {error_body or exc.reason}") from exc
        except (OSError, ValueError) as exc:
            # OSError covers URLError and socket timeouts.
            raise UpstreamError(f"Slack {method} failed: {exc}") from exc
        if not isinstance(raw, dict):
            raise UpstreamError(f"Slack {method} returned a non-object response")
        if not raw.get("ok", False):
            raise UpstreamError(f"Slack {method} failed: {raw.get('error', 'unknown_error')}")
        return raw


def parse_slack_message(item: dict[str, Any], channel_id: str) -> Message | None:
    """Summary: Convert a Slack message payload into a Message.

    Importance: Skips joins, bots without authors, and empty messages.
    Alternatives: Store raw payloads and parse later.
    """

    if item.get("type", "message") != "message" or not item.get("user") or not item.get("text"):
        return None
    ts = str(item.get("ts", ""))
    if not ts:
        return None
    try:
        timestamp = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    except ValueError:
        logger.warning("Skipping Slack message with invalid ts %s", ts)
        return None
    thread_ts = item.get("thread_ts")
    return Message(
        id=message_id_for(channel_id, ts),
        channel_id=channel_id,
        user_id=item["user"],
        text=item["text"],
        timestamp=timestamp,
        reactions=tuple(
            Reaction(
                name=reaction.get("name", ""),
                count=int(reaction.get("count", 0)),
                users=tuple(reaction.get("users", [])),
            )
            for reaction in item.get("reactions", [])
        ),
        thread_id=message_id_for(channel_id, thread_ts) if thread_ts else None,
    )


def _parse_channel(item: dict[str, Any]) -> Channel:
    return Channel(
        id=item["id"],
        name=item.get("name", item["id"]),
        is_private=bool(item.get("is_private", False)),
        member_count=int(item.get("num_members", 0)),
    )


def _parse_user(item: dict[str, Any]) -> User:
    profile = item.get("profile") or {}
    return User(
        id=item["id"],
        name=item.get("real_name") or item.get("name", item["id"]),
        real_name=item.get("real_name"),
        email=profile.get("email"),
    )
