"""Models module."""

from sci.models.check_run import (
    CheckRun,
    CheckStage,
    RunRequest,
    RunStatus,
    RunTrigger,
)

__all__ = [
    "CheckRun",
    "CheckStage",
    "RunRequest",
    "RunStatus",
    "RunTrigger",
]
