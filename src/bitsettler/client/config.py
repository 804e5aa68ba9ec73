"""
Configuration for the settlement API client.

Precedence (highest to lowest):

1. Command-line arguments (--server, --timeout, --token)
2. Environment variables (BITSETTLER_SERVER_URL, BITSETTLER_REQUEST_TIMEOUT,
   BITSETTLER_TOKEN)
3. Default values

Example:
    config = ClientConfig.from_args(["--server", "http://localhost:8000"])
    print(config.server_url)  # "http://localhost:8000"
    print(config.timeout)     # 30.0 (default)
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Sequence
from dataclasses import dataclass, field

# =============================================================================
# DEFAULT CONFIGURATION VALUES
# =============================================================================

DEFAULT_SERVER_URL = "http://localhost:8000"

# Default HTTP request timeout in seconds. A settlement sync can take a while
# for large rosters, so this is kept generous.
DEFAULT_TIMEOUT = 30.0

ENV_SERVER_URL = "BITSETTLER_SERVER_URL"
ENV_TIMEOUT = "BITSETTLER_REQUEST_TIMEOUT"
ENV_TOKEN = "BITSETTLER_TOKEN"  # nosec B105 - env var name, not a secret


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable client configuration.

    Attributes:
        server_url: Base URL of the API, without a trailing slash.
        timeout: HTTP request timeout in seconds, applied to every call.
        token: Bearer token of the account the client acts for.
    """

    server_url: str
    timeout: float
    token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """
        Validate configuration values after initialization.

        Raises:
            ValueError: If server_url is empty or timeout is not positive.
        """
        if not self.server_url:
            raise ValueError("server_url cannot be empty")

        if self.timeout <= 0:
            raise ValueError("timeout must be a positive number")

    @classmethod
    def from_args(cls, args: Sequence[str] | None = None) -> ClientConfig:
        """
        Create a ClientConfig from command-line arguments.

        Unspecified options fall back to environment variables and then to
        defaults.

        Args:
            args: Command-line arguments to parse. If None, uses sys.argv[1:].
        """
        parser = argparse.ArgumentParser(
            prog="bitsettler-client",
            description="Settlement API client",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Environment Variables:
  BITSETTLER_SERVER_URL       Server URL (default: http://localhost:8000)
  BITSETTLER_REQUEST_TIMEOUT  Request timeout in seconds (default: 30)
  BITSETTLER_TOKEN            Bearer token for the account
            """,
        )
        parser.add_argument(
            "--server",
            "-s",
            dest="server_url",
            default=None,
            help=f"API server URL (default: {DEFAULT_SERVER_URL})",
        )
        parser.add_argument(
            "--timeout",
            "-t",
            type=float,
            default=None,
            help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT})",
        )
        parser.add_argument("--token", default=None, help="Bearer token for the account")

        parsed = parser.parse_args(args)

        server_url = parsed.server_url or os.environ.get(ENV_SERVER_URL) or DEFAULT_SERVER_URL
        server_url = server_url.rstrip("/")

        if parsed.timeout is not None:
            timeout = parsed.timeout
        elif ENV_TIMEOUT in os.environ:
            timeout = float(os.environ[ENV_TIMEOUT])
        else:
            timeout = DEFAULT_TIMEOUT

        token = parsed.token or os.environ.get(ENV_TOKEN) or None

        return cls(server_url=server_url, timeout=timeout, token=token)
