"""
The server operations the flows depend on.

``SettlementAPIClient`` implements this over HTTP; tests use in-memory fakes.
Implementations raise ``TransportError`` when a call fails before a
structured response arrives. Claim and sync return their result objects for
structured rejections; the other calls raise ``GatewayError``.
"""

from __future__ import annotations

from typing import Protocol

from bitsettler.flow.models import (
    CharacterCandidate,
    ClaimRequest,
    ClaimResult,
    InviteCode,
    InviteJoin,
    Settlement,
    SwitchCandidates,
    SyncResult,
    TreasurySnapshot,
)


class SettlementGateway(Protocol):
    async def search_settlements(self, query: str) -> list[Settlement]: ...

    async def fetch_claimable_characters(self, settlement_id: str) -> list[CharacterCandidate]: ...

    async def join_by_invite_code(self, code: str) -> InviteJoin: ...

    async def fetch_switch_candidates(self) -> SwitchCandidates: ...

    async def sync_settlement(self, settlement_id: str, mode: str = "full") -> SyncResult: ...

    async def commit_claim(self, request: ClaimRequest) -> ClaimResult: ...

    async def fetch_invite_code(self, settlement_id: str) -> InviteCode: ...

    async def regenerate_invite_code(self, settlement_id: str) -> InviteCode: ...

    async def fetch_treasury(self, settlement_id: str) -> TreasurySnapshot: ...
