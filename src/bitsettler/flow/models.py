"""
Data carried through the onboarding / claim / switch flows.

Everything except ``FlowSelection`` is a frozen read-only projection of what
the server returned. Payloads arrive as the camelCase JSON the API emits;
``from_api`` converts them and ``to_dict`` produces the form kept in the
local cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(UTC)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class Settlement:
    """
    A settlement as shown in search results and confirmation screens.

    Attributes:
        id: Upstream claim id. Identity of the settlement.
        name: Display name.
        tier: Settlement tier (0 when unknown).
        treasury: Treasury balance at fetch time.
        supplies: Supplies at fetch time.
        tiles: Claimed tile count.
        population: Member count.
        leader_name: Owner's character name, if known.
    """

    id: str
    name: str
    tier: int = 0
    treasury: int = 0
    supplies: int = 0
    tiles: int = 0
    population: int = 0
    leader_name: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Settlement:
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            tier=int(payload.get("tier") or 0),
            treasury=int(payload.get("treasury") or 0),
            supplies=int(payload.get("supplies") or 0),
            tiles=int(payload.get("tiles") or 0),
            population=int(payload.get("population") or payload.get("memberCount") or 0),
            leader_name=payload.get("leaderName"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tier": self.tier,
            "treasury": self.treasury,
            "supplies": self.supplies,
            "tiles": self.tiles,
            "population": self.population,
            "leaderName": self.leader_name,
        }


@dataclass(frozen=True)
class CharacterCandidate:
    """
    An unclaimed (or switch-eligible) in-game character of one settlement.

    Claiming changes ownership on the server. This object is never updated
    to reflect that; it is simply refetched.
    """

    id: str
    entity_id: str
    name: str
    settlement_id: str
    skills: dict[str, int] = field(default_factory=dict)
    top_profession: str | None = None
    total_level: int = 0

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> CharacterCandidate:
        skills = payload.get("skills") or {}
        return cls(
            id=str(payload["id"]),
            entity_id=str(payload.get("entityId") or payload["id"]),
            name=str(payload.get("name", "")),
            settlement_id=str(payload.get("settlementId", "")),
            skills={str(name): int(level or 0) for name, level in skills.items()},
            top_profession=payload.get("topProfession"),
            total_level=int(payload.get("totalLevel") or 0),
        )

    def ranked_skills(self) -> list[str]:
        """Skill names, highest level first, ties broken by name."""
        return [name for name, _ in sorted(self.skills.items(), key=lambda kv: (-kv[1], kv[0]))]


@dataclass(frozen=True)
class InviteCode:
    """The single active invite code of a settlement."""

    code: str
    formatted_code: str
    created_at: datetime
    settlement_id: str
    settlement_name: str

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> InviteCode:
        code = str(payload.get("code") or payload.get("inviteCode") or "")
        return cls(
            code=code,
            formatted_code=str(payload.get("formattedCode") or code),
            created_at=_parse_timestamp(payload.get("createdAt") or payload.get("generatedAt")),
            settlement_id=str(payload.get("settlementId", "")),
            settlement_name=str(payload.get("settlementName", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "formattedCode": self.formatted_code,
            "createdAt": self.created_at.isoformat(),
            "settlementId": self.settlement_id,
            "settlementName": self.settlement_name,
        }


@dataclass(frozen=True)
class SyncStats:
    """Counters reported by a finished settlement sync."""

    members_found: int = 0
    members_added: int = 0
    members_updated: int = 0
    citizens_found: int = 0
    citizens_added: int = 0
    citizens_updated: int = 0
    sync_duration_ms: int = 0
    api_calls_made: int = 0

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> SyncStats:
        return cls(
            members_found=int(payload.get("membersFound") or 0),
            members_added=int(payload.get("membersAdded") or 0),
            members_updated=int(payload.get("membersUpdated") or 0),
            citizens_found=int(payload.get("citizensFound") or 0),
            citizens_added=int(payload.get("citizensAdded") or 0),
            citizens_updated=int(payload.get("citizensUpdated") or 0),
            sync_duration_ms=int(payload.get("syncDurationMs") or 0),
            api_calls_made=int(payload.get("apiCallsMade") or 0),
        )


@dataclass(frozen=True)
class SyncResult:
    """Authoritative outcome of a settlement sync."""

    success: bool
    data: SyncStats | None = None
    error: str | None = None


@dataclass(frozen=True)
class ClaimRequest:
    """
    Body of a commit-claim call.

    ``replaces_character_id`` is set by the switch flow: the caller's current
    character is released in the same transaction that claims the new one.
    """

    character_id: str
    settlement_id: str
    display_name: str | None = None
    primary_profession: str | None = None
    secondary_profession: str | None = None
    replaces_character_id: str | None = None

    @property
    def is_switch(self) -> bool:
        return self.replaces_character_id is not None

    def to_api(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "characterId": self.character_id,
            "settlementId": self.settlement_id,
        }
        if self.replaces_character_id:
            body["currentCharacterId"] = self.replaces_character_id
        if self.display_name:
            body["displayName"] = self.display_name
        if self.primary_profession:
            body["primaryProfession"] = self.primary_profession
        if self.secondary_profession:
            body["secondaryProfession"] = self.secondary_profession
        return body


# Claim statuses reported as a rejected ClaimResult. Other failures raise GatewayError.
CLAIM_REJECTION_STATUSES = (400, 404, 409)


@dataclass(frozen=True)
class ClaimResult:
    """
    Outcome of a commit-claim call that reached the server.

    Attributes:
        success: True when the character now belongs to the caller.
        character: Claimed character record on success.
        error: Server message on rejection, shown to the user verbatim.
        code: Optional machine-readable rejection code.
        status_code: HTTP status of a rejection, when one was received.
    """

    success: bool
    character: dict[str, Any] | None = None
    error: str | None = None
    code: str | None = None
    status_code: int | None = None

    @property
    def character_unavailable(self) -> bool:
        """False when the request itself was refused and the character may still be free."""
        return self.status_code != 400


@dataclass(frozen=True)
class SwitchCandidates:
    """Characters the caller may switch to, with their current one."""

    settlement: Settlement
    available_characters: list[CharacterCandidate]
    current_character: CharacterCandidate | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> SwitchCandidates:
        current = payload.get("currentCharacter")
        return cls(
            settlement=Settlement.from_api(payload["settlement"]),
            available_characters=[
                CharacterCandidate.from_api(item)
                for item in payload.get("availableCharacters") or []
            ],
            current_character=CharacterCandidate.from_api(current) if current else None,
        )


@dataclass(frozen=True)
class TreasurySnapshot:
    """Latest known treasury balance of a settlement."""

    settlement_id: str
    balance: int
    previous_balance: int | None = None
    change: int = 0
    recorded_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> TreasurySnapshot:
        recorded = payload.get("recordedAt")
        previous = payload.get("previousBalance")
        return cls(
            settlement_id=str(payload.get("settlementId", "")),
            balance=int(payload.get("balance") or 0),
            previous_balance=int(previous) if previous is not None else None,
            change=int(payload.get("change") or 0),
            recorded_at=_parse_timestamp(recorded) if recorded else None,
        )


@dataclass
class FlowSelection:
    """
    Mutable selection state owned by one flow controller.

    At most one settlement and one character are held at a time, and picking
    a settlement always drops the character and profession picks made for
    the previous one.
    """

    selected_settlement: Settlement | None = None
    selected_character: CharacterCandidate | None = None
    primary_profession: str | None = None
    secondary_profession: str | None = None
    custom_display_name: str | None = None

    def select_settlement(self, settlement: Settlement) -> None:
        self.selected_settlement = settlement
        self.clear_character()

    def select_character(self, character: CharacterCandidate) -> None:
        self.selected_character = character
        self.primary_profession = None
        self.secondary_profession = None

    def clear_character(self) -> None:
        self.selected_character = None
        self.primary_profession = None
        self.secondary_profession = None

    def clear(self) -> None:
        self.selected_settlement = None
        self.clear_character()
        self.custom_display_name = None


@dataclass(frozen=True)
class InviteJoin:
    """Settlement an invite code resolved to, with its unclaimed characters."""

    settlement: Settlement
    characters: list[CharacterCandidate]

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> InviteJoin:
        return cls(
            settlement=Settlement.from_api(payload["settlement"]),
            characters=[
                CharacterCandidate.from_api(item) for item in payload.get("characters") or []
            ],
        )
