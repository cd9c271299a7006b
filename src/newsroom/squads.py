"""Summary: Squad configuration and channel-to-squad context resolution.

Importance: Scopes tagging, scoring, and summaries to the team that owns a channel.
Alternatives: Store squad ownership on each channel record only.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from newsroom.errors import ValidationError
from newsroom.models import ChannelConfig, PersonConfig, SquadConfig, TagConfig

DEFAULT_SQUAD = "general"

# Ordered: the first matching pattern wins.
SQUAD_RULES: tuple[tuple[str, str], ...] = (
    (r"epic", "epic"),
    (r"portal", "portal-agg"),
    (r"rcm", "core-rcm"),
    (r"hitl|biowound|legent", "hitl"),
    (r"voice|(^|[-_])ai($|[-_])|nox|orthofi", "voice"),
    (r"thoughthub", "thoughthub"),
    (r"workflow|worfklow|dev-eff", "developer-efficiency"),
    (r"reporting|(^|[-_])data($|[-_])", "data"),
    (r"pathfinder|toolforge|research", "deep-research"),
    (r"coding", "medical-coding"),
    (r"customer", "customer-facing"),
)

MULTIPLIER_RULES: tuple[tuple[str, float], ...] = (
    (r"production|critical", 1.3),
    (r"epic|core-rcm", 1.2),
    (r"dev|test", 0.9),
)

DEFAULT_MULTIPLIER = 1.0


def resolve_squad(
    channel_name: str, rules: tuple[tuple[str, str], ...] = SQUAD_RULES
) -> str:
    """Summary: Map a channel name to a squad id using ordered pattern rules.

    Importance: Deterministic squad resolution keeps grouping stable across runs.
    Alternatives: Require every channel to be registered explicitly.
    """

    name = channel_name.lower()
    for pattern, squad_id in rules:
        if re.search(pattern, name):
            return squad_id
    return DEFAULT_SQUAD


def matching_squads(
    channel_name: str, rules: tuple[tuple[str, str], ...] = SQUAD_RULES
) -> list[str]:
    """Summary: Return every squad whose rule matches, in rule order.

    Importance: Gives prompts related-squad hints beyond the primary match.
    Alternatives: Inject only the primary squad into prompts.
    """

    name = channel_name.lower()
    squads: list[str] = []
    for pattern, squad_id in rules:
        if re.search(pattern, name) and squad_id not in squads:
            squads.append(squad_id)
    return squads


def importance_multiplier(
    channel_name: str, rules: tuple[tuple[str, float], ...] = MULTIPLIER_RULES
) -> float:
    """Summary: Return the importance multiplier for a channel name.

    Importance: Weights production channels above development chatter.
    Alternatives: Configure a multiplier per channel id.
    """

    name = channel_name.lower()
    for pattern, multiplier in rules:
        if re.search(pattern, name):
            return multiplier
    return DEFAULT_MULTIPLIER


DEFAULT_SQUADS: tuple[SquadConfig, ...] = (
    SquadConfig(
        id="general",
        name="General",
        description="General product and company-wide discussions",
        channels=(
            ChannelConfig(id="product", name="product", is_primary=True),
            ChannelConfig(id="core-engineering", name="core-engineering"),
        ),
        tags=(TagConfig(id="product", name="Product", confidence=0.9),),
    ),
    SquadConfig(
        id="voice",
        name="Voice",
        description="Voice AI and related implementations",
        channels=(
            ChannelConfig(
                id="thoughtful-access-voice-ai",
                name="thoughtful-access-voice-ai",
                is_primary=True,
            ),
            ChannelConfig(
                id="nox-health",
                name="nox-health",
                related_channels=("thoughtful-access-voice-ai",),
            ),
            ChannelConfig(
                id="orthofi", name="orthofi", related_channels=("thoughtful-access-voice-ai",)
            ),
        ),
        people=(PersonConfig(id="jake-mcclanahan", name="Jake McClanahan", common_tags=("voice", "ai")),),
    ),
    SquadConfig(
        id="core-rcm",
        name="Core RCM",
        description="Revenue cycle management",
        subsquads=("epic", "portal-agg"),
    ),
    SquadConfig(
        id="epic",
        name="EPIC",
        parent_squad="core-rcm",
        channels=(ChannelConfig(id="thoughtful-epic", name="thoughtful-epic", is_primary=True),),
        people=(PersonConfig(id="jasmine-shah", name="Jasmine Shah", common_tags=("epic",)),),
    ),
    SquadConfig(
        id="portal-agg",
        name="Portal Agg",
        parent_squad="core-rcm",
        channels=(
            ChannelConfig(id="portal-aggregator", name="portal-aggregator", is_primary=True),
        ),
        people=(PersonConfig(id="craig-gifford-portal", name="Craig Gifford", common_tags=("portal",)),),
    ),
    SquadConfig(
        id="hitl",
        name="HITL",
        description="Human-in-the-loop operations",
        channels=(
            ChannelConfig(id="hitl-squad", name="hitl-squad", is_primary=True),
            ChannelConfig(id="biowound", name="biowound"),
            ChannelConfig(id="legent", name="legent"),
        ),
        tags=(TagConfig(id="arc", name="ARC"), TagConfig(id="access", name="Access")),
    ),
    SquadConfig(id="customer-facing", name="Customer Facing"),
    SquadConfig(
        id="thoughthub",
        name="ThoughtHub",
        channels=(ChannelConfig(id="thoughthub", name="thoughthub", is_primary=True),),
    ),
    SquadConfig(
        id="developer-efficiency",
        name="Developer Efficiency",
        channels=(
            ChannelConfig(
                id="dd-worfklow-engine-partnership",
                name="dd-worfklow-engine-partnership",
                is_primary=True,
            ),
        ),
    ),
    SquadConfig(
        id="data",
        name="Data",
        channels=(ChannelConfig(id="reporting-sdk", name="reporting-sdk", is_primary=True),),
    ),
    SquadConfig(id="medical-coding", name="Medical Coding"),
    SquadConfig(
        id="deep-research",
        name="Deep Research",
        channels=(
            ChannelConfig(
                id="pathfinder-toolforge-alpha", name="pathfinder-toolforge-alpha", is_primary=True
            ),
        ),
        tags=(TagConfig(id="toolforge", name="Toolforge"), TagConfig(id="pathfinder", name="Pathfinder")),
    ),
)


class SquadDirectory:
    """Summary: Read-only lookup over squad configuration.

    Importance: Aggregates channels, people, and tags across the two-level hierarchy.
    Alternatives: Query a squads table with recursive SQL.
    """

    def __init__(self, squads: tuple[SquadConfig, ...] | list[SquadConfig] = DEFAULT_SQUADS) -> None:
        self._squads = list(squads)
        self._by_id = {squad.id: squad for squad in self._squads}
        _validate_hierarchy(self._squads, self._by_id)

    @staticmethod
    def from_file(path: Path) -> "SquadDirectory":
        """Summary: Load squad configuration from a JSON file.

        Importance: Lets operators edit squads without code changes.
        Alternatives: Keep squads compiled into the package only.
        """

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ValidationError(f"Invalid squad configuration {path}: {exc}") from exc
        if not isinstance(raw, list):
            raise ValidationError("Squad configuration must be a JSON list")
        return SquadDirectory([squad_from_dict(item) for item in raw])

    def all_squads(self) -> list[SquadConfig]:
        return list(self._squads)

    def get_squad(self, squad_id: str) -> SquadConfig | None:
        return self._by_id.get(squad_id)

    def main_squads(self) -> list[SquadConfig]:
        return [squad for squad in self._squads if not squad.parent_squad]

    def subsquads(self, parent_id: str) -> list[SquadConfig]:
        return [squad for squad in self._squads if squad.parent_squad == parent_id]

    def channels_for_squad(self, squad_id: str) -> list[ChannelConfig]:
        """Summary: Return the squad's channels plus those of its direct subsquads.

        Importance: Parent squads see their subsquads' channels on the dashboard.
        Alternatives: Show only directly owned channels.
        """

        return [channel for squad in self._family(squad_id) for channel in squad.channels]

    def people_for_squad(self, squad_id: str) -> list[PersonConfig]:
        return [person for squad in self._family(squad_id) for person in squad.people]

    def tags_for_squad(self, squad_id: str) -> list[TagConfig]:
        return [tag for squad in self._family(squad_id) for tag in squad.tags]

    def member_ids(self, squad_id: str) -> list[str]:
        """Summary: Return the squad id and its direct subsquad ids.

        Importance: Lets summaries for a parent squad include subsquad traffic.
        Alternatives: Filter summaries by exact squad id only.
        """

        return [squad.id for squad in self._family(squad_id)]

    def find_squad_by_channel(self, channel_name: str) -> SquadConfig | None:
        for squad in self._squads:
            if any(channel.name == channel_name for channel in squad.channels):
                return squad
        return None

    def find_squad_by_person(self, person_name: str) -> SquadConfig | None:
        for squad in self._squads:
            if any(person.name == person_name for person in squad.people):
                return squad
        return None

    def to_json(self) -> str:
        """Summary: Export the configuration as JSON.

        Importance: Round-trips operator edits through the same file format.
        Alternatives: Export YAML.
        """

        return json.dumps([asdict(squad) for squad in self._squads], indent=2)

    def _family(self, squad_id: str) -> list[SquadConfig]:
        squad = self._by_id.get(squad_id)
        if not squad:
            return []
        # Direct subsquads only; the hierarchy never exceeds two levels.
        members = [squad]
        for subsquad_id in squad.subsquads:
            subsquad = self._by_id.get(subsquad_id)
            if subsquad:
                members.append(subsquad)
        return members


@dataclass(frozen=True)
class SquadResolver:
    """Summary: Resolves squad identity, prompt context, and multipliers for channels.

    Importance: Single pure entry point the orchestrator and summaries share.
    Alternatives: Duplicate channel-name checks in each service.
    """

    directory: SquadDirectory = field(default_factory=SquadDirectory)
    rules: tuple[tuple[str, str], ...] = SQUAD_RULES
    multiplier_rules: tuple[tuple[str, float], ...] = MULTIPLIER_RULES

    def resolve(self, channel_name: str) -> str:
        """Summary: Resolve the owning squad of a channel.

        Importance: Explicit ownership beats name patterns when both exist.
        Alternatives: Use name patterns only.
        """

        owner = self.directory.find_squad_by_channel(channel_name)
        if owner:
            return owner.id
        return resolve_squad(channel_name, self.rules)

    def squad_context(self, channel_name: str) -> list[str]:
        """Summary: Return the squad ids injected into analysis prompts.

        Importance: Gives the model the primary squad, related squads, and parent.
        Alternatives: Send the full squad catalogue with every prompt.
        """

        primary = self.resolve(channel_name)
        squads = [primary]
        for squad_id in matching_squads(channel_name, self.rules):
            if squad_id not in squads:
                squads.append(squad_id)
        squad = self.directory.get_squad(primary)
        if squad and squad.parent_squad and squad.parent_squad not in squads:
            squads.append(squad.parent_squad)
        return squads

    def multiplier(self, channel_name: str) -> float:
        return importance_multiplier(channel_name, self.multiplier_rules)


def squad_from_dict(data: dict[str, Any]) -> SquadConfig:
    """Summary: Build a SquadConfig from a JSON dictionary.

    Importance: Accepts both snake_case exports and camelCase hand-written files.
    Alternatives: Require one exact key style.
    """

    if not data.get("id") or not data.get("name"):
        raise ValidationError("Squad entries require id and name")
    return SquadConfig(
        id=data["id"],
        name=data["name"],
        description=data.get("description"),
        parent_squad=data.get("parent_squad") or data.get("parentSquad"),
        channels=tuple(
            ChannelConfig(
                id=item["id"],
                name=item.get("name", item["id"]),
                is_primary=bool(item.get("is_primary", item.get("isPrimary", False))),
                description=item.get("description"),
                related_channels=tuple(
                    item.get("related_channels", item.get("relatedChannels", []))
                ),
            )
            for item in data.get("channels", [])
        ),
        tags=tuple(
            TagConfig(
                id=item["id"],
                name=item.get("name", item["id"]),
                category=item.get("category", "keyword"),
                confidence=float(item.get("confidence", 0.8)),
            )
            for item in data.get("tags", [])
        ),
        people=tuple(
            PersonConfig(
                id=item["id"],
                name=item.get("name", item["id"]),
                email=item.get("email"),
                role=item.get("role"),
                common_tags=tuple(item.get("common_tags", item.get("commonTags", []))),
            )
            for item in data.get("people", [])
        ),
        subsquads=tuple(data.get("subsquads", [])),
    )


def _validate_hierarchy(squads: list[SquadConfig], by_id: dict[str, SquadConfig]) -> None:
    """Summary: Reject squad trees deeper than two levels.

    Importance: Aggregation assumes parents never have parents.
    Alternatives: Support arbitrary depth with recursive aggregation.
    """

    if len(by_id) != len(squads):
        raise ValidationError("Squad ids must be unique")
    for squad in squads:
        if squad.parent_squad:
            parent = by_id.get(squad.parent_squad)
            if parent and parent.parent_squad:
                raise ValidationError(
                    f"Squad {squad.id} nests under {parent.id}, which already has a parent"
                )
        for subsquad_id in squad.subsquads:
            subsquad = by_id.get(subsquad_id)
            if subsquad and subsquad.subsquads:
                raise ValidationError(
                    f"Subsquad {subsquad_id} of {squad.id} cannot own subsquads"
                )
