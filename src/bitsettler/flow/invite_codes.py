"""
Settlement invite codes.

Codes are six characters, three letters then three digits, drawn from an
alphabet without the visually ambiguous ``I``, ``O``, ``0`` and ``1`` so they
survive being read aloud or copied from a screenshot.

Only the server generates codes. Clients validate and normalize what users
type, and display exactly the code the server returned.
"""

from __future__ import annotations

from datetime import UTC, datetime
from secrets import choice

from bitsettler.flow.models import InviteCode

LETTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ"
DIGITS = "23456789"
INVITE_CODE_CHARS = LETTERS + DIGITS
INVITE_CODE_LENGTH = 6


def generate_invite_code() -> str:
    """Return a fresh code such as ``"KQR482"``."""
    letters = "".join(choice(LETTERS) for _ in range(3))
    digits = "".join(choice(DIGITS) for _ in range(3))
    return letters + digits


def is_valid_invite_code(code: str) -> bool:
    """Check length and alphabet, ignoring case."""
    if not isinstance(code, str) or len(code) != INVITE_CODE_LENGTH:
        return False
    return all(char in INVITE_CODE_CHARS for char in code.upper())


def normalize_invite_code(code: str) -> str:
    """Strip surrounding whitespace and uppercase user input."""
    return code.strip().upper()


def format_invite_code(code: str) -> str:
    """Display form of a code. Codes are short enough to show unchanged."""
    return code


def generate_settlement_invite_code(settlement_id: str, settlement_name: str) -> InviteCode:
    """Build a new invite code record for a settlement."""
    code = generate_invite_code()
    return InviteCode(
        code=code,
        formatted_code=format_invite_code(code),
        created_at=datetime.now(UTC),
        settlement_id=settlement_id,
        settlement_name=settlement_name,
    )


def generate_invite_link(code: str, base_url: str) -> str:
    """Return the shareable join URL for a code."""
    return f"{base_url.rstrip('/')}/settlement/join/{code}"


def create_invite_message(settlement_name: str, code: str, base_url: str | None = None) -> str:
    """Compose the text a member pastes into chat to invite someone."""
    message = f"Join me in {settlement_name}!\n\nUse invite code: {format_invite_code(code)}"
    if base_url:
        message += f"\n\nOr follow this link: {generate_invite_link(code, base_url)}"
    return message
