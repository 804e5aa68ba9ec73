"""
Progress reporting for the settlement sync.

A sync takes several seconds and the server only answers once, at the end.
``SyncProgressSimulator`` walks the optimistic stages by elapsed time so the
user sees movement; it can never produce ``COMPLETED`` or ``ERROR``. Those
come only from ``terminal_progress`` built on the real sync result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SyncStage(Enum):
    CONNECTING = "connecting"
    SYNCING_MEMBERS = "syncing-members"
    SYNCING_CITIZENS = "syncing-citizens"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStage.COMPLETED, SyncStage.ERROR)


@dataclass(frozen=True)
class StageInfo:
    progress: int
    message: str
    details: str
    eta: str | None = None


STAGE_INFO: dict[SyncStage, StageInfo] = {
    SyncStage.CONNECTING: StageInfo(
        10, "Connecting to settlement...", "Establishing connection to game servers", "2-3 seconds"
    ),
    SyncStage.SYNCING_MEMBERS: StageInfo(
        40, "Syncing member data...", "Fetching settlement roster and permissions", "5-10 seconds"
    ),
    SyncStage.SYNCING_CITIZENS: StageInfo(
        70, "Syncing citizen data...", "Fetching skills and professions", "3-5 seconds"
    ),
    SyncStage.COMPLETING: StageInfo(
        90, "Finalizing connection...", "Setting up your settlement dashboard", "1-2 seconds"
    ),
    SyncStage.COMPLETED: StageInfo(100, "Connection established!", "Your settlement is ready"),
    SyncStage.ERROR: StageInfo(0, "Connection failed", "Something went wrong during sync"),
}

OPTIMISTIC_STAGES = (
    SyncStage.CONNECTING,
    SyncStage.SYNCING_MEMBERS,
    SyncStage.SYNCING_CITIZENS,
    SyncStage.COMPLETING,
)


@dataclass(frozen=True)
class SyncProgress:
    """
    One progress update.

    Attributes:
        stage: Current stage.
        progress: Percentage, fixed per stage. An error keeps the last one.
        message: Short human-readable label.
        details: Longer description, or the failure reason on error.
        eta: Rough remaining time for optimistic stages.
        authoritative: True only for updates built from the real result.
    """

    stage: SyncStage
    progress: int
    message: str
    details: str
    eta: str | None = None
    authoritative: bool = False

    @classmethod
    def for_stage(cls, stage: SyncStage) -> SyncProgress:
        info = STAGE_INFO[stage]
        return cls(
            stage=stage,
            progress=info.progress,
            message=info.message,
            details=info.details,
            eta=info.eta,
        )


def terminal_progress(
    success: bool, last: SyncProgress | None = None, error: str | None = None
) -> SyncProgress:
    """Authoritative final update for a finished sync."""
    if success:
        info = STAGE_INFO[SyncStage.COMPLETED]
        return SyncProgress(
            stage=SyncStage.COMPLETED,
            progress=info.progress,
            message=info.message,
            details=info.details,
            authoritative=True,
        )
    info = STAGE_INFO[SyncStage.ERROR]
    return SyncProgress(
        stage=SyncStage.ERROR,
        progress=last.progress if last else info.progress,
        message=info.message,
        details=error or info.details,
        authoritative=True,
    )


class SyncProgressSimulator:
    """
    Maps elapsed seconds to an optimistic stage.

    Each optimistic stage except the last has an expected duration; the
    simulator moves to the next stage once the cumulative expectation has
    passed and then waits at ``COMPLETING`` for as long as the sync runs.
    """

    def __init__(
        self,
        connecting: float = 1.0,
        syncing_members: float = 6.0,
        syncing_citizens: float = 3.0,
    ):
        self.boundaries = (
            connecting,
            connecting + syncing_members,
            connecting + syncing_members + syncing_citizens,
        )

    def stage_at(self, elapsed: float) -> SyncStage:
        for boundary, stage in zip(self.boundaries, OPTIMISTIC_STAGES, strict=False):
            if elapsed < boundary:
                return stage
        return SyncStage.COMPLETING

    def progress_at(self, elapsed: float) -> SyncProgress:
        return SyncProgress.for_stage(self.stage_at(elapsed))
