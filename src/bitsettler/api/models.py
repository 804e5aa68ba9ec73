"""
Pydantic models for API requests and responses.

Request bodies use camelCase on the wire (``characterId``) and snake_case in
Python; the alias generator maps between them. Identifier fields are
optional so handlers can answer a missing id with the documented 400
message instead of a generic validation error.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


class CamelModel(BaseModel):
    """Base for request bodies sent with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClaimCharacterRequest(CamelModel):
    """
    Claim an unowned character.

    Attributes:
        character_id: Member (player entity) id to claim.
        settlement_id: Settlement the character belongs to.
        display_name: Optional name shown instead of the in-game name.
        primary_profession: Optional catalog id or name.
        secondary_profession: Optional catalog id or name, distinct from primary.
    """

    character_id: str | None = None
    settlement_id: str | None = None
    display_name: str | None = None
    primary_profession: str | None = None
    secondary_profession: str | None = None


class SwitchCharacterRequest(ClaimCharacterRequest):
    """
    Release the current character and claim another one.

    ``current_character_id`` defaults to the caller's current character.
    """

    current_character_id: str | None = None


class SyncRequest(CamelModel):
    """Run a roster sync for one settlement."""

    settlement_id: str | None = None
    mode: Literal["full", "incremental"] = "full"
    operation: str | None = None
    settlement_name: str | None = None
    triggered_by: str | None = None


class InviteCodeRequest(CamelModel):
    """Regenerate the invite code of the caller's settlement."""

    settlement_id: str | None = None


class ProfessionsRequest(CamelModel):
    """Change the professions of the caller's current character."""

    settlement_id: str | None = None
    primary_profession: str | None = None
    secondary_profession: str | None = None


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class SuccessResponse(BaseModel):
    """
    Envelope of every successful settlement endpoint.

    Failures use ``{"success": false, "error": ..., "code": ...}``, produced
    by the server's exception handlers.
    """

    success: bool = True
    data: dict[str, Any]


class SyncResponse(BaseModel):
    """Sync outcome; ``error`` is set when ``success`` is false."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
