"""
HTTP client for the settlement API.

``SettlementAPIClient`` implements the ``SettlementGateway`` the flow
controllers depend on. It must be used as an async context manager so the
connection pool is closed:

    async with SettlementAPIClient(config) as client:
        controller = ClaimFlowController(client)
        controller.set_query("Riv")

Error mapping:
    - No response, a timeout, or a body that is not JSON -> ``TransportError``
    - Claim rejections (400, 404, 409) and sync failures -> ``ClaimResult`` /
      ``SyncResult`` with ``success=False`` and the server's message
    - Any other non-2xx response -> ``GatewayError`` (``AuthenticationError``
      for 401/403)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from bitsettler.client.config import ClientConfig
from bitsettler.flow.errors import GatewayError, TransportError
from bitsettler.flow.models import (
    CLAIM_REJECTION_STATUSES,
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

logger = logging.getLogger(__name__)


class AuthenticationError(GatewayError):
    """
    Raised when the server refuses the caller's token.

    This includes a missing or unknown token (401) and a permission check
    that failed (403), such as regenerating an invite code as a plain member.
    """


@dataclass
class SettlementAPIClient:
    """
    Async HTTP client for the settlement API.

    Attributes:
        config: Server URL, timeout and bearer token.

    Example:
        config = ClientConfig(server_url="http://localhost:8000", timeout=30.0, token="...")

        async with SettlementAPIClient(config) as client:
            settlements = await client.search_settlements("Riverside")
            invite = await client.fetch_invite_code(settlements[0].id)
    """

    config: ClientConfig

    _http_client: httpx.AsyncClient | None = field(default=None, repr=False)

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> SettlementAPIClient:
        headers = {"X-Client-Type": "flow"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        self._http_client = httpx.AsyncClient(
            base_url=self.config.server_url,
            timeout=self.config.timeout,
            headers=headers,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """
        Get the HTTP client, ensuring it's been initialized.

        Raises:
            RuntimeError: If accessed outside of async context manager.
        """
        if self._http_client is None:
            raise RuntimeError(
                "SettlementAPIClient must be used as an async context manager. "
                "Use 'async with SettlementAPIClient(config) as client:'"
            )
        return self._http_client

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    async def _request(
        self, method: str, path: str, action: str, **kwargs: Any
    ) -> tuple[httpx.Response, dict[str, Any]]:
        """Send one request and decode its JSON object body."""
        try:
            response = await self.http_client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s timed out after %ss", action, self.config.timeout)
            raise TransportError(detail=f"{action} timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("%s failed: %s", action, e)
            raise TransportError(
                detail=f"Cannot connect to server at {self.config.server_url}: {e}"
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                detail=f"{action}: server returned invalid response "
                f"(status {response.status_code})"
            ) from e
        if not isinstance(data, dict):
            raise TransportError(detail=f"{action}: server returned a non-object payload")
        return response, data

    @staticmethod
    def _error_message(response: httpx.Response, data: dict[str, Any]) -> tuple[str, str | None]:
        """Extract ``(message, code)`` from an error body."""
        detail = data.get("detail")
        code = data.get("code")
        message = data.get("error")
        if isinstance(detail, dict):
            message = message or detail.get("error")
            code = code or detail.get("code")
        elif isinstance(detail, str):
            message = message or detail
        if not message:
            message = f"HTTP {response.status_code}: {response.reason_phrase}"
        return str(message), code

    @staticmethod
    def _succeeded(response: httpx.Response, data: dict[str, Any]) -> bool:
        return response.is_success and data.get("success", True) is not False

    def _payload(self, response: httpx.Response, data: dict[str, Any]) -> dict[str, Any]:
        """Return the ``data`` member of a successful envelope or raise."""
        if not self._succeeded(response, data):
            message, code = self._error_message(response, data)
            error_cls = (
                AuthenticationError if response.status_code in (401, 403) else GatewayError
            )
            raise error_cls(message=message, status_code=response.status_code, code=code)
        payload = data.get("data", data)
        return payload if isinstance(payload, dict) else {}

    # -------------------------------------------------------------------------
    # Settlement lookup
    # -------------------------------------------------------------------------

    async def search_settlements(self, query: str) -> list[Settlement]:
        response, data = await self._request(
            "GET", "/settlement/search", "Settlement search", params={"q": query}
        )
        payload = self._payload(response, data)
        return [Settlement.from_api(item) for item in payload.get("settlements") or []]

    async def fetch_claimable_characters(self, settlement_id: str) -> list[CharacterCandidate]:
        response, data = await self._request(
            "GET", f"/settlement/{settlement_id}/characters", "Character list"
        )
        payload = self._payload(response, data)
        return [CharacterCandidate.from_api(item) for item in payload.get("characters") or []]

    async def join_by_invite_code(self, code: str) -> InviteJoin:
        response, data = await self._request("GET", f"/settlement/join/{code}", "Invite lookup")
        return InviteJoin.from_api(self._payload(response, data))

    async def fetch_switch_candidates(self) -> SwitchCandidates:
        response, data = await self._request(
            "GET", "/settlement/switch-character", "Switch candidates"
        )
        return SwitchCandidates.from_api(self._payload(response, data))

    # -------------------------------------------------------------------------
    # Claim and sync
    # -------------------------------------------------------------------------

    async def commit_claim(self, request: ClaimRequest) -> ClaimResult:
        if request.is_switch:
            path = "/settlement/switch-character"
        else:
            path = "/settlement/claim-character"
        response, data = await self._request("POST", path, "Claim", json=request.to_api())
        if not self._succeeded(response, data) and (
            response.is_success or response.status_code in CLAIM_REJECTION_STATUSES
        ):
            message, code = self._error_message(response, data)
            return ClaimResult(
                success=False, error=message, code=code, status_code=response.status_code
            )
        payload = self._payload(response, data)
        return ClaimResult(success=True, character=payload.get("character"))

    async def sync_settlement(self, settlement_id: str, mode: str = "full") -> SyncResult:
        body = {
            "operation": "onboarding",
            "mode": mode,
            "settlementId": settlement_id,
            "triggeredBy": "user_onboarding",
        }
        response, data = await self._request("POST", "/settlement/sync", "Sync", json=body)
        if not self._succeeded(response, data):
            message, _ = self._error_message(response, data)
            return SyncResult(success=False, error=message)
        return SyncResult(success=True, data=SyncStats.from_api(data.get("data") or {}))

    # -------------------------------------------------------------------------
    # Invite codes and treasury
    # -------------------------------------------------------------------------

    async def fetch_invite_code(self, settlement_id: str) -> InviteCode:
        response, data = await self._request(
            "GET", "/settlement/invite-code", "Invite code", params={"settlementId": settlement_id}
        )
        return InviteCode.from_api(self._payload(response, data))

    async def regenerate_invite_code(self, settlement_id: str) -> InviteCode:
        response, data = await self._request(
            "POST",
            "/settlement/invite-code",
            "Invite code regeneration",
            json={"settlementId": settlement_id},
        )
        return InviteCode.from_api(self._payload(response, data))

    async def fetch_treasury(self, settlement_id: str) -> TreasurySnapshot:
        response, data = await self._request(
            "GET", "/settlement/treasury", "Treasury", params={"settlementId": settlement_id}
        )
        return TreasurySnapshot.from_api(self._payload(response, data))

    async def get_health(self) -> dict[str, Any]:
        response, data = await self._request("GET", "/health", "Health check")
        if not response.is_success:
            message, code = self._error_message(response, data)
            raise GatewayError(message=message, status_code=response.status_code, code=code)
        return dict(data)
