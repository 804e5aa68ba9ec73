"""Settlement endpoints: search, join, claim, switch, members, invite codes, sync, treasury."""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from bitsettler.api.auth import require_account
from bitsettler.api.models import (
    ClaimCharacterRequest,
    InviteCodeRequest,
    ProfessionsRequest,
    SuccessResponse,
    SwitchCharacterRequest,
    SyncRequest,
    SyncResponse,
)
from bitsettler.config import config
from bitsettler.db import members_repo, settlements_repo, treasury_repo
from bitsettler.flow.invite_codes import (
    create_invite_message,
    format_invite_code,
    generate_invite_link,
    generate_settlement_invite_code,
    is_valid_invite_code,
    normalize_invite_code,
)
from bitsettler.flow.professions import display_profession, format_profession_display
from bitsettler.services import game_data
from bitsettler.services.professions import resolve_profession
from bitsettler.services.settlement_sync import sync_settlement

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 20
MIN_SEARCH_LENGTH = 2
INVITE_CODE_ATTEMPTS = 10
TREASURY_HISTORY_LIMIT = 20

SYNC_FAILURE_STATUS = {
    "settlement_not_found": 404,
    "upstream_unavailable": 502,
    "database_error": 500,
}


# ============================================================================
# PAYLOADS
# ============================================================================


def settlement_payload(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "tier": row.get("tier", 0),
        "treasury": row.get("treasury", 0),
        "supplies": row.get("supplies", 0),
        "tiles": row.get("tiles", 0),
        "population": row.get("population", 0),
        "leaderName": row.get("leader_name"),
        "isEstablished": bool(row.get("is_established")),
        "lastSyncedAt": row.get("last_synced_at"),
    }


def character_payload(member: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": member["id"],
        "entityId": member["entity_id"],
        "name": member["name"],
        "settlementId": member["settlement_id"],
        "skills": member["skills"],
        "topProfession": member["top_profession"],
        "totalLevel": member["total_level"],
        "highestLevel": member["highest_level"],
        "displayName": member["display_name"],
        "primaryProfession": member["primary_profession"],
        "secondaryProfession": member["secondary_profession"],
        "professionDisplay": format_profession_display(
            member["primary_profession"],
            member["secondary_profession"],
            member["top_profession"],
        ),
        "isClaimed": member["owner_account_id"] is not None,
        "claimedAt": member["claimed_at"],
        "permissions": {
            "inventory": member["inventory_permission"],
            "build": member["build_permission"],
            "officer": member["officer_permission"],
            "co_owner": member["co_owner_permission"],
        },
    }


def invite_code_payload(row: dict[str, Any], settlement: dict[str, Any]) -> dict[str, Any]:
    base_url = config.integrations.public_base_url
    return {
        "inviteCode": row["code"],
        "formattedCode": format_invite_code(row["code"]),
        "generatedAt": row["generated_at"],
        "lastRegeneratedAt": row["last_regenerated_at"],
        "settlementId": settlement["id"],
        "settlementName": settlement["name"],
        "inviteLink": generate_invite_link(row["code"], base_url),
        "shareMessage": create_invite_message(settlement["name"], row["code"], base_url),
    }


def member_payload(member: dict[str, Any]) -> dict[str, Any]:
    """Directory entry: the character fields plus activity and the shown profession."""
    payload = character_payload(member)
    payload.update(
        profession=display_profession(member["primary_profession"], member["top_profession"]),
        isActive=member["is_active"],
        lastSyncedAt=member["last_synced_at"],
    )
    return payload


# ============================================================================
# HELPERS
# ============================================================================


def _require_settlement(settlement_id: str) -> dict[str, Any]:
    settlement = settlements_repo.get_settlement(settlement_id)
    if settlement is None:
        raise HTTPException(status_code=404, detail="Settlement not found")
    return settlement


def _validated_professions(
    primary: str | None, secondary: str | None
) -> tuple[str | None, str | None]:
    """Resolve profession labels to catalog names or raise 400."""
    resolved = []
    for label in (primary, secondary):
        if not label:
            resolved.append(None)
            continue
        name = resolve_profession(label)
        if name is None:
            raise HTTPException(status_code=400, detail=f"Unknown profession: {label}")
        resolved.append(name)
    if resolved[0] and resolved[0] == resolved[1]:
        raise HTTPException(
            status_code=400, detail="Primary and secondary professions must be different"
        )
    return resolved[0], resolved[1]


def _clean_display_name(display_name: str | None) -> str | None:
    if display_name is None:
        return None
    return display_name.strip() or None


def _can_regenerate(member: dict[str, Any]) -> bool:
    return member["officer_permission"] > 0 or member["co_owner_permission"] > 0


def _store_new_invite_code(settlement: dict[str, Any], account_id: int, *, replace: bool) -> None:
    """Generate a code unique across settlements, retrying on collision."""
    settlement_id = settlement["id"]
    if replace:
        store = settlements_repo.replace_invite_code
    else:
        store = settlements_repo.create_invite_code
    for _ in range(INVITE_CODE_ATTEMPTS):
        invite = generate_settlement_invite_code(settlement_id, settlement["name"])
        if store(settlement_id, invite.code, account_id=account_id):
            return
    logger.error("Could not allocate a unique invite code for %s", settlement_id)
    raise HTTPException(status_code=500, detail="Failed to generate invite code")


def _require_membership(account: dict[str, Any], settlement_id: str | None) -> dict[str, Any]:
    member = members_repo.get_account_member(account["id"], settlement_id)
    if member is None:
        raise HTTPException(status_code=404, detail="User is not a member of any settlement")
    return member


# ============================================================================
# ROUTER
# ============================================================================


def router() -> APIRouter:
    """Build the settlement router."""
    api = APIRouter(prefix="/settlement", dependencies=[Depends(require_account)])

    @api.get("/search", response_model=SuccessResponse)
    def search(q: str = "", page: int = 1):
        """
        Search settlements by name.

        Local settlements are searched first; when none match and the game
        data integration is enabled, the upstream API is queried and its
        results are stored for later sync and claim calls.
        """
        query = q.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            raise HTTPException(
                status_code=400, detail="Search query must be at least 2 characters"
            )
        page = max(1, page)

        rows, total = settlements_repo.search_settlements(
            query, limit=SEARCH_PAGE_SIZE, offset=(page - 1) * SEARCH_PAGE_SIZE
        )
        pagination = {
            "currentPage": page,
            "totalResults": total,
            "hasMore": page * SEARCH_PAGE_SIZE < total,
        }

        if total == 0 and config.integrations.game_data_enabled:
            upstream, error = game_data.search_claims(query, page)
            if upstream is None:
                logger.warning("Upstream search for %r failed: %s", query, error)
            else:
                for row in upstream["settlements"]:
                    settlements_repo.upsert_settlement(row)
                rows = upstream["settlements"]
                pagination = upstream["pagination"]

        return {
            "success": True,
            "data": {
                "settlements": [settlement_payload(row) for row in rows],
                "pagination": pagination,
                "searchQuery": query,
            },
        }

    @api.get("/join/{code}", response_model=SuccessResponse)
    def join_by_invite_code(code: str):
        """Resolve an invite code to its settlement and unclaimed characters."""
        normalized = normalize_invite_code(code)
        settlement = None
        if is_valid_invite_code(normalized):
            settlement = settlements_repo.get_settlement_by_invite_code(normalized)
        if settlement is None:
            raise HTTPException(status_code=404, detail="Invalid invite code")
        characters = members_repo.list_unclaimed_members(settlement["id"])
        return {
            "success": True,
            "data": {
                "settlement": settlement_payload(settlement),
                "characters": [character_payload(m) for m in characters],
                "inviteCode": normalized,
            },
        }

    @api.get("/switch-character", response_model=SuccessResponse)
    def switch_candidates(account: dict[str, Any] = Depends(require_account)):
        """List characters the caller may switch to, strongest first."""
        current = members_repo.get_account_member(account["id"])
        if current is None:
            raise HTTPException(
                status_code=404,
                detail={
                    "error": "You must have a claimed character to switch characters",
                    "code": "NO_CURRENT_CHARACTER",
                },
            )
        available = members_repo.list_unclaimed_members(current["settlement_id"], by_level=True)
        if not available:
            raise HTTPException(
                status_code=404,
                detail={
                    "error": "No unclaimed characters available in your settlement for switching",
                    "code": "NO_AVAILABLE_CHARACTERS",
                },
            )
        settlement = _require_settlement(current["settlement_id"])
        return {
            "success": True,
            "data": {
                "settlement": settlement_payload(settlement),
                "availableCharacters": [character_payload(m) for m in available],
                "totalAvailable": len(available),
                "currentCharacter": character_payload(current),
            },
        }

    @api.post("/switch-character", response_model=SuccessResponse)
    def switch_character(
        request: SwitchCharacterRequest, account: dict[str, Any] = Depends(require_account)
    ):
        """Release the caller's current character and claim another atomically."""
        if not request.character_id:
            raise HTTPException(status_code=400, detail="characterId is required")
        current = members_repo.get_account_member(account["id"], request.settlement_id)
        if current is None or (
            request.current_character_id and request.current_character_id != current["id"]
        ):
            raise HTTPException(
                status_code=404,
                detail={
                    "error": "You must have a claimed character to switch characters",
                    "code": "NO_CURRENT_CHARACTER",
                },
            )
        target = members_repo.get_member(request.character_id)
        if (
            target is None
            or target["settlement_id"] != current["settlement_id"]
            or not target["is_active"]
            or target["owner_account_id"] is not None
        ):
            raise HTTPException(
                status_code=404, detail="Character not available or already claimed"
            )
        primary, secondary = _validated_professions(
            request.primary_profession, request.secondary_profession
        )

        switched = members_repo.switch_member(
            account["id"],
            current["id"],
            target["id"],
            display_name=_clean_display_name(request.display_name),
            primary_profession=primary,
            secondary_profession=secondary,
        )
        if not switched:
            raise HTTPException(status_code=409, detail="Character was claimed by someone else")

        logger.info("Account %s switched %s -> %s", account["id"], current["id"], target["id"])
        claimed = members_repo.get_member(target["id"])
        settlement = _require_settlement(target["settlement_id"])
        return {
            "success": True,
            "data": {
                "character": character_payload(claimed),
                "previousCharacterId": current["id"],
                "settlement": settlement_payload(settlement),
            },
        }

    @api.post("/claim-character", response_model=SuccessResponse)
    def claim_character(
        request: ClaimCharacterRequest, account: dict[str, Any] = Depends(require_account)
    ):
        """Claim an unowned character for the caller."""
        if not request.character_id or not request.settlement_id:
            raise HTTPException(
                status_code=400, detail="characterId and settlementId are required"
            )

        member = members_repo.get_member(request.character_id)
        if (
            member is None
            or member["settlement_id"] != request.settlement_id
            or not member["is_active"]
            or member["owner_account_id"] is not None
        ):
            raise HTTPException(
                status_code=404, detail="Character not available or already claimed"
            )

        existing = members_repo.get_account_member(account["id"], request.settlement_id)
        if existing is not None:
            name = existing["display_name"] or existing["name"]
            raise HTTPException(
                status_code=409,
                detail=f"You already have a character in this settlement: {name}",
            )

        primary, secondary = _validated_professions(
            request.primary_profession, request.secondary_profession
        )
        claimed = members_repo.claim_member(
            member["id"],
            account["id"],
            display_name=_clean_display_name(request.display_name),
            primary_profession=primary,
            secondary_profession=secondary,
        )
        if not claimed:
            raise HTTPException(status_code=409, detail="Character was claimed by someone else")

        logger.info("Account %s claimed character %s", account["id"], member["id"])
        settlement = _require_settlement(request.settlement_id)
        return {
            "success": True,
            "data": {
                "character": character_payload(members_repo.get_member(member["id"])),
                "settlement": settlement_payload(settlement),
            },
        }

    @api.put("/professions", response_model=SuccessResponse)
    def update_professions(
        request: ProfessionsRequest, account: dict[str, Any] = Depends(require_account)
    ):
        """Change the professions of the caller's current character."""
        member = members_repo.get_account_member(account["id"], request.settlement_id)
        if member is None:
            raise HTTPException(
                status_code=404,
                detail="No claimed character found. Please claim a character first.",
            )
        primary, secondary = _validated_professions(
            request.primary_profession, request.secondary_profession
        )
        if not members_repo.update_professions(member["id"], account["id"], primary, secondary):
            raise HTTPException(status_code=409, detail="Character is no longer yours")
        return {
            "success": True,
            "data": {"character": character_payload(members_repo.get_member(member["id"]))},
        }

    @api.get("/invite-code", response_model=SuccessResponse)
    def get_invite_code(
        settlement_id: str | None = Query(default=None, alias="settlementId"),
        account: dict[str, Any] = Depends(require_account),
    ):
        """Return the settlement's invite code, creating it on first access."""
        member = _require_membership(account, settlement_id)
        settlement = _require_settlement(member["settlement_id"])
        row = settlements_repo.get_invite_code(settlement["id"])
        if row is None:
            _store_new_invite_code(settlement, account["id"], replace=False)
            row = settlements_repo.get_invite_code(settlement["id"])
        data = invite_code_payload(row, settlement)
        data["canRegenerate"] = _can_regenerate(member)
        return {"success": True, "data": data}

    @api.post("/invite-code", response_model=SuccessResponse)
    def regenerate_invite_code(
        request: InviteCodeRequest, account: dict[str, Any] = Depends(require_account)
    ):
        """Replace the invite code; the previous code stops resolving."""
        member = _require_membership(account, request.settlement_id)
        if not _can_regenerate(member):
            raise HTTPException(
                status_code=403, detail="Insufficient permissions to regenerate invite code"
            )
        settlement = _require_settlement(member["settlement_id"])
        exists = settlements_repo.get_invite_code(settlement["id"]) is not None
        _store_new_invite_code(settlement, account["id"], replace=exists)
        row = settlements_repo.get_invite_code(settlement["id"])
        logger.info("Account %s regenerated invite code of %s", account["id"], settlement["id"])
        data = invite_code_payload(row, settlement)
        data["canRegenerate"] = True
        return {"success": True, "data": data}

    @api.post("/sync", response_model=SyncResponse)
    def sync(request: SyncRequest, account: dict[str, Any] = Depends(require_account)):
        """Pull the settlement roster and citizens from the game-data API."""
        if not request.settlement_id:
            raise HTTPException(status_code=400, detail="settlementId is required")
        result = sync_settlement(
            request.settlement_id,
            mode=request.mode,
            triggered_by=request.triggered_by or f"account:{account['id']}",
            settlement_name=request.settlement_name,
        )
        if not result.success:
            raise HTTPException(
                status_code=SYNC_FAILURE_STATUS.get(result.reason, 500), detail=result.message
            )
        stats = result.stats
        return {
            "success": True,
            "data": {
                "settlementId": request.settlement_id,
                "membersFound": stats.get("members_found", 0),
                "membersAdded": stats.get("members_added", 0),
                "membersUpdated": stats.get("members_updated", 0),
                "membersDeactivated": stats.get("members_deactivated", 0),
                "citizensFound": stats.get("citizens_found", 0),
                "citizensUpdated": stats.get("citizens_updated", 0),
                "syncDurationMs": stats.get("duration_ms", 0),
                "apiCallsMade": stats.get("api_calls_made", 0),
            },
        }

    @api.get("/treasury", response_model=SuccessResponse)
    def treasury(settlement_id: str = Query(alias="settlementId")):
        """Current treasury balance with recent snapshots, newest first."""
        settlement = _require_settlement(settlement_id)
        history = treasury_repo.list_history(settlement_id, limit=TREASURY_HISTORY_LIMIT)
        latest = history[0] if history else None
        return {
            "success": True,
            "data": {
                "settlementId": settlement_id,
                "balance": settlement["treasury"],
                "previousBalance": latest["previous_balance"] if latest else None,
                "change": latest["change"] if latest else 0,
                "recordedAt": latest["recorded_at"] if latest else None,
                "history": [
                    {
                        "balance": row["balance"],
                        "previousBalance": row["previous_balance"],
                        "change": row["change"],
                        "recordedAt": row["recorded_at"],
                    }
                    for row in history
                ],
            },
        }

    @api.get("/members", response_model=SuccessResponse)
    def members(
        settlement_id: str | None = Query(default=None, alias="settlementId"),
        include_inactive: bool = Query(default=False, alias="includeInactive"),
    ):
        """Member directory of a settlement, highest total level first."""
        if not settlement_id:
            raise HTTPException(status_code=400, detail="Settlement ID is required")
        _require_settlement(settlement_id)
        rows = members_repo.list_members(settlement_id, include_inactive=include_inactive)
        return {
            "success": True,
            "data": {
                "settlementId": settlement_id,
                "members": [member_payload(m) for m in rows],
                "memberCount": len(rows),
                "source": "database",
                "lastUpdated": datetime.now(UTC).isoformat(),
            },
        }

    @api.get("/members/{member_id}", response_model=SuccessResponse)
    def member_detail(
        member_id: str, settlement_id: str | None = Query(default=None, alias="settlementId")
    ):
        """One member of the directory, by player id or entity id."""
        if not settlement_id:
            raise HTTPException(status_code=400, detail="Settlement ID is required")
        member = members_repo.get_settlement_member(settlement_id, member_id)
        if member is None:
            raise HTTPException(status_code=404, detail="Member not found in cached data")
        return {"success": True, "data": member_payload(member)}

    @api.get("/{settlement_id}/characters", response_model=SuccessResponse)
    def claimable_characters(settlement_id: str):
        """Unclaimed, active characters of a settlement, by name."""
        settlement = _require_settlement(settlement_id)
        characters = members_repo.list_unclaimed_members(settlement_id)
        return {
            "success": True,
            "data": {
                "settlement": settlement_payload(settlement),
                "characters": [character_payload(m) for m in characters],
            },
        }

    return api
