"""
Test doubles for the flow controllers.

``FakeGateway`` implements ``SettlementGateway`` in memory. Canned results
live in plain attributes, ``errors`` makes a call raise, and names listed in
``hold`` block until the test calls ``resume``.
"""

import asyncio
from typing import Any

from bitsettler.flow.errors import GatewayError
from bitsettler.flow.models import (
    CharacterCandidate,
    ClaimRequest,
    ClaimResult,
    InviteCode,
    InviteJoin,
    Settlement,
    SwitchCandidates,
    SyncResult,
    SyncStats,
    TreasurySnapshot,
)
from tests.constants import SETTLEMENT_ID, SETTLEMENT_NAME


def make_settlement(settlement_id: str = SETTLEMENT_ID, name: str = SETTLEMENT_NAME) -> Settlement:
    return Settlement(id=settlement_id, name=name, tier=3, treasury=1500, population=4)


def make_candidate(
    character_id: str,
    name: str,
    *,
    settlement_id: str = SETTLEMENT_ID,
    skills: dict[str, int] | None = None,
    total_level: int = 10,
) -> CharacterCandidate:
    if skills is None:
        skills = {"Farming": 10, "Fishing": 5, "Cooking": 3}
    ranked = sorted(skills.items(), key=lambda kv: (-kv[1], kv[0]))
    return CharacterCandidate(
        id=character_id,
        entity_id=f"e-{character_id}",
        name=name,
        settlement_id=settlement_id,
        skills=skills,
        top_profession=ranked[0][0] if ranked else None,
        total_level=total_level,
    )


def make_invite(code: str, settlement_id: str = SETTLEMENT_ID) -> InviteCode:
    return InviteCode.from_api(
        {
            "inviteCode": code,
            "formattedCode": code,
            "generatedAt": "2026-01-01T00:00:00+00:00",
            "settlementId": settlement_id,
            "settlementName": SETTLEMENT_NAME,
        }
    )


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run without advancing any timers."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeGateway:
    """In-memory ``SettlementGateway`` recording every call."""

    def __init__(self) -> None:
        self.settlements: list[Settlement] = [
            make_settlement(),
            make_settlement("s-2", "Hollow Creek"),
        ]
        self.characters: dict[str, list[CharacterCandidate]] = {
            SETTLEMENT_ID: [
                make_candidate("p-bob", "Bob", total_level=38),
                make_candidate("p-cara", "Cara", total_level=50),
            ],
            "s-2": [make_candidate("p-eve", "Eve", settlement_id="s-2")],
        }
        self.claim_result = ClaimResult(success=True, character={"id": "p-bob"})
        self.sync_result = SyncResult(
            success=True, data=SyncStats(members_found=4, citizens_found=4)
        )
        self.invite = make_invite("KQR482")
        self.regenerated: list[str] = ["MNP234", "XYZ789"]
        self.switch = SwitchCandidates(
            settlement=make_settlement(),
            available_characters=[
                make_candidate("p-cara", "Cara", total_level=50),
                make_candidate("p-bob", "Bob", total_level=38),
            ],
            current_character=make_candidate("p-alice", "Alice", total_level=87),
        )
        self.treasury = TreasurySnapshot(settlement_id=SETTLEMENT_ID, balance=1500)
        self.errors: dict[str, Exception] = {}
        self.hold: set[str] = set()
        self.held: dict[str, list[asyncio.Future[None]]] = {}
        self.calls: list[tuple[str, Any]] = []

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def args(self, name: str) -> list[Any]:
        return [arg for call, arg in self.calls if call == name]

    def resume(self, name: str, index: int = 0) -> None:
        """Let the ``index``-th held call of ``name`` return."""
        self.held[name][index].set_result(None)

    async def _enter(self, name: str, arg: Any) -> None:
        self.calls.append((name, arg))
        if name in self.hold:
            future = asyncio.get_running_loop().create_future()
            self.held.setdefault(name, []).append(future)
            await future
        if name in self.errors:
            raise self.errors[name]

    async def search_settlements(self, query: str) -> list[Settlement]:
        await self._enter("search_settlements", query)
        needle = query.lower()
        return [s for s in self.settlements if needle in s.name.lower()]

    async def fetch_claimable_characters(self, settlement_id: str) -> list[CharacterCandidate]:
        await self._enter("fetch_claimable_characters", settlement_id)
        return list(self.characters.get(settlement_id, []))

    async def join_by_invite_code(self, code: str) -> InviteJoin:
        await self._enter("join_by_invite_code", code)
        if code != self.invite.code:
            raise GatewayError(message="Invalid invite code", status_code=404)
        return InviteJoin(
            settlement=make_settlement(), characters=list(self.characters[SETTLEMENT_ID])
        )

    async def fetch_switch_candidates(self) -> SwitchCandidates:
        await self._enter("fetch_switch_candidates", None)
        return self.switch

    async def sync_settlement(self, settlement_id: str, mode: str = "full") -> SyncResult:
        await self._enter("sync_settlement", (settlement_id, mode))
        return self.sync_result

    async def commit_claim(self, request: ClaimRequest) -> ClaimResult:
        await self._enter("commit_claim", request)
        return self.claim_result

    async def fetch_invite_code(self, settlement_id: str) -> InviteCode:
        await self._enter("fetch_invite_code", settlement_id)
        return self.invite

    async def regenerate_invite_code(self, settlement_id: str) -> InviteCode:
        await self._enter("regenerate_invite_code", settlement_id)
        self.invite = make_invite(self.regenerated.pop(0), settlement_id)
        return self.invite

    async def fetch_treasury(self, settlement_id: str) -> TreasurySnapshot:
        await self._enter("fetch_treasury", settlement_id)
        return self.treasury
