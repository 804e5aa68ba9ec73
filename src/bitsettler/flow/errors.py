"""
Error taxonomy for the settlement flows.

Gateways raise ``TransportError`` when no structured response came back and
``GatewayError`` for structured non-2xx responses. Controllers catch both at
the call site and turn them into a ``FAILED`` step or an inline message;
nothing here escapes a controller method.
"""

from __future__ import annotations

from dataclasses import dataclass

GENERIC_TRANSPORT_MESSAGE = "Unable to reach the server. Please try again."
GENERIC_SYNC_FAILURE = "Failed to sync settlement data"


class FlowError(Exception):
    """Base class for flow errors."""


class FlowValidationError(FlowError):
    """A transition was attempted without the selection it needs."""


class NotFoundOrAlreadyClaimed(FlowError):
    """The server rejected a claim because the character is no longer available."""


class SyncFailure(FlowError):
    """The settlement sync reported ``success: false``."""


@dataclass
class TransportError(FlowError):
    """
    Request failed before a structured response was received.

    Attributes:
        message: Message shown to the user.
        detail: Underlying cause, for logs.
    """

    message: str = GENERIC_TRANSPORT_MESSAGE
    detail: str = ""

    def __str__(self) -> str:
        return self.message


@dataclass
class GatewayError(FlowError):
    """
    Structured error response from the server.

    Attributes:
        message: Server-provided error text, or an HTTP fallback.
        status_code: HTTP status of the response.
        code: Optional machine-readable error code (``NO_CURRENT_CHARACTER``).
    """

    message: str
    status_code: int = 0
    code: str | None = None

    def __str__(self) -> str:
        return self.message
