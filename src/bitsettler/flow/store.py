"""
Client-side selection cache.

The flows remember which settlement and character are active, and the
settlement's invite code, through a narrow ``KeyValueStore`` contract. The
cache is best-effort: the server is the source of truth and everything here
can be dropped and refetched.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from bitsettler.flow.gateway import SettlementGateway
from bitsettler.flow.models import InviteCode, Settlement

logger = logging.getLogger(__name__)

SELECTED_SETTLEMENT_KEY = "selected_settlement"
SELECTED_CHARACTER_KEY = "selected_character_id"
INVITE_CODE_KEY = "invite_code"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def clear(self, key: str | None = None) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, the default for tests and short-lived hosts."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._data.clear()
        else:
            self._data.pop(key, None)


class JsonFileKeyValueStore:
    """
    Store persisted as a single JSON object on disk.

    Values must be JSON-serializable. A missing or unreadable file is treated
    as an empty store; the cache is rebuilt from the server anyway.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable selection cache %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    def get(self, key: str) -> Any | None:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._write({})
            return
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class SettlementSelectionStore:
    """
    Active settlement, character and invite code for the rest of the app.

    Holds at most one invite code. ``regenerate`` always shows exactly the
    code the server returned; this class never generates one itself.
    """

    def __init__(self, store: KeyValueStore, gateway: SettlementGateway):
        self.store = store
        self.gateway = gateway

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    @property
    def selected_settlement(self) -> Settlement | None:
        payload = self.store.get(SELECTED_SETTLEMENT_KEY)
        return Settlement.from_api(payload) if payload else None

    @property
    def selected_character_id(self) -> str | None:
        return self.store.get(SELECTED_CHARACTER_KEY)

    def select(self, settlement: Settlement, character_id: str | None = None) -> None:
        cached = self.cached_invite_code
        if cached is not None and cached.settlement_id != settlement.id:
            self.store.clear(INVITE_CODE_KEY)
        self.store.set(SELECTED_SETTLEMENT_KEY, settlement.to_dict())
        if character_id is None:
            self.store.clear(SELECTED_CHARACTER_KEY)
        else:
            self.store.set(SELECTED_CHARACTER_KEY, character_id)

    # -------------------------------------------------------------------------
    # Invite code
    # -------------------------------------------------------------------------

    @property
    def cached_invite_code(self) -> InviteCode | None:
        payload = self.store.get(INVITE_CODE_KEY)
        return InviteCode.from_api(payload) if payload else None

    async def fetch_current(self, settlement_id: str, *, refresh: bool = False) -> InviteCode:
        """
        Return the settlement's invite code, reading through to the server.

        The cached code is used only when it belongs to ``settlement_id`` and
        ``refresh`` is False.

        Raises:
            TransportError, GatewayError: From the gateway on a cache miss.
        """
        cached = self.cached_invite_code
        if not refresh and cached is not None and cached.settlement_id == settlement_id:
            return cached

        invite = await self.gateway.fetch_invite_code(settlement_id)
        self.store.set(INVITE_CODE_KEY, invite.to_dict())
        return invite

    async def regenerate(self, settlement_id: str) -> InviteCode:
        """Replace the code server-side and cache the value it returns."""
        invite = await self.gateway.regenerate_invite_code(settlement_id)
        self.store.set(INVITE_CODE_KEY, invite.to_dict())
        logger.info("Invite code regenerated for settlement %s", settlement_id)
        return invite

    def clear(self) -> None:
        """Forget the local selection and code. Nothing is revoked server-side."""
        self.store.clear(INVITE_CODE_KEY)
        self.store.clear(SELECTED_SETTLEMENT_KEY)
        self.store.clear(SELECTED_CHARACTER_KEY)
