"""Bitsettler: settlement onboarding and character claiming.

A settlement companion service for a crafting MMO. The ``flow`` package holds
the client-side onboarding / claim / switch state machine; ``api`` serves the
collaborators that flow talks to (search, claim, invite codes, sync) over
FastAPI and SQLite.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version, read from pyproject.toml via importlib.metadata.
#
# If the package is imported without being installed we fall back to the
# last released version so the application can still start.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("bitsettler")
except PackageNotFoundError:
    __version__ = "0.3.0"
