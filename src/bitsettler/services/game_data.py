"""
Client for the upstream game-data API (settlement claims, rosters, citizens).

Every call returns ``(value, error_message)``. Network failures, non-200
statuses and malformed payloads become an error message and a warning log;
nothing here raises for upstream trouble, so route handlers and the sync
service can report a readable reason.

Payloads are normalized to the column names used by the DB layer.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from bitsettler.config import config

logger = logging.getLogger(__name__)


def _base_url() -> tuple[str | None, str | None]:
    if not config.integrations.game_data_enabled:
        return None, "Game data integration is disabled."
    base_url = config.integrations.game_data_base_url.strip().rstrip("/")
    if not base_url:
        return None, "Game data integration is enabled but no base URL is configured."
    return base_url, None


def _get_json(
    path: str, params: dict[str, Any] | None = None
) -> tuple[dict[str, Any] | None, str | None]:
    """GET ``{base}{path}`` and return its JSON object body."""
    base_url, error = _base_url()
    if base_url is None:
        return None, error

    try:
        response = requests.get(
            f"{base_url}{path}",
            params=params,
            headers={"x-app-identifier": config.integrations.game_data_app_identifier},
            timeout=config.integrations.game_data_timeout_seconds,
        )
        if response.status_code != 200:
            return None, f"Game data API returned HTTP {response.status_code}."
        body = response.json()
        if not isinstance(body, dict):
            return None, "Game data API returned a non-object payload."
        return body, None
    except requests.exceptions.RequestException as exc:
        logger.warning("Game data API request failed (%s): %s", path, exc)
        return None, "Game data API unavailable."
    except ValueError:
        logger.warning("Game data API returned invalid JSON (%s).", path)
        return None, "Game data API returned invalid JSON."


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def normalize_claim(claim: dict[str, Any]) -> dict[str, Any]:
    """Map one upstream claim to a settlement row."""
    return {
        "id": str(claim.get("entityId") or claim.get("id")),
        "name": str(claim.get("name") or ""),
        "tier": _int(claim.get("tier")),
        "treasury": _int(claim.get("treasury")),
        "supplies": _int(claim.get("supplies")),
        "tiles": _int(claim.get("numTiles") or claim.get("tiles")),
        # Upstream has no headcount on claims; tiles is the closest proxy.
        "population": _int(claim.get("population") or claim.get("numTiles")),
        "leader_name": claim.get("ownerPlayerName") or claim.get("leaderName"),
    }


def search_claims(query: str, page: int = 1) -> tuple[dict[str, Any] | None, str | None]:
    """Search upstream settlements by name.

    Returns:
        ``({"settlements": [...], "pagination": {...}}, None)`` on success.
    """
    body, error = _get_json("/claims", {"q": query, "page": page})
    if body is None:
        return None, error
    claims = body.get("claims") or []
    settlements = [normalize_claim(c) for c in claims if isinstance(c, dict) and c.get("name")]
    return {
        "settlements": settlements,
        "pagination": {
            "currentPage": page,
            "totalResults": _int(body.get("totalResults")) or len(settlements),
            "hasMore": bool(body.get("hasMore")),
        },
    }, None


def fetch_claim(settlement_id: str) -> tuple[dict[str, Any] | None, str | None]:
    """Fetch one settlement's details as a settlement row."""
    body, error = _get_json(f"/claims/{settlement_id}")
    if body is None:
        return None, error
    claim = body.get("claim") if isinstance(body.get("claim"), dict) else body
    if not claim.get("name"):
        return None, "Game data API returned a claim without a name."
    row = normalize_claim(claim)
    row["id"] = settlement_id
    return row, None


def fetch_roster(settlement_id: str) -> tuple[list[dict[str, Any]] | None, str | None]:
    """Fetch the member roster, keyed by player entity id."""
    body, error = _get_json(f"/claims/{settlement_id}/members")
    if body is None:
        return None, error
    members = []
    for member in body.get("members") or []:
        player_id = member.get("playerEntityId") or member.get("entityId")
        if not player_id or not member.get("userName"):
            continue
        members.append(
            {
                "id": str(player_id),
                "entity_id": str(member.get("entityId") or player_id),
                "name": member["userName"],
                "inventory_permission": _int(member.get("inventoryPermission")),
                "build_permission": _int(member.get("buildPermission")),
                "officer_permission": _int(member.get("officerPermission")),
                "co_owner_permission": _int(member.get("coOwnerPermission")),
            }
        )
    return members, None


def fetch_citizens(settlement_id: str) -> tuple[list[dict[str, Any]] | None, str | None]:
    """Fetch citizens with skills resolved from ids to skill names.

    ``top_profession`` is the name of the citizen's highest skill.
    """
    body, error = _get_json(f"/claims/{settlement_id}/citizens")
    if body is None:
        return None, error
    skill_names = body.get("skillNames") or {}
    citizens = []
    for citizen in body.get("citizens") or []:
        if not citizen.get("entityId"):
            continue
        skills = {
            str(skill_names.get(str(skill_id), skill_id)): _int(level)
            for skill_id, level in (citizen.get("skills") or {}).items()
        }
        ranked = sorted(skills.items(), key=lambda kv: (-kv[1], kv[0]))
        top = ranked[0] if ranked else None
        citizens.append(
            {
                "id": str(citizen["entityId"]),
                "skills": skills,
                "top_profession": top[0] if top and top[1] > 0 else None,
                "total_level": _int(citizen.get("totalLevel")),
                "highest_level": _int(citizen.get("highestLevel")),
            }
        )
    return citizens, None
