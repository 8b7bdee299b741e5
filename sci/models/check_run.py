from dataclasses import dataclass, field
from enum import Enum


class RunStatus(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class CheckStage(Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    CHECKED_OUT = "checked_out"
    DEPENDENCIES_FETCHED = "dependencies_fetched"
    PRECOMPILED = "precompiled"
    RUNNING_CHECKS = "running_checks"
    DONE = "done"


class RunTrigger(Enum):
    WEBHOOK = "webhook"
    MANUAL = "manual"


@dataclass(eq=False)
class RunRequest:
    repo: str
    commit: str
    actor: str | None = None
    ref: str | None = None
    trigger: RunTrigger = RunTrigger.WEBHOOK
    superseded: bool = False

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repo.split("/", 1)[1]


@dataclass
class CheckRun:
    repo: str
    commit: str
    outputs: dict[str, str] = field(
        default_factory=lambda: {"metadata": "", "setup": ""}
    )
    success: bool = False
    stage: CheckStage = CheckStage.IDLE
    failed_stage: CheckStage | None = None

    @property
    def status(self) -> RunStatus:
        return RunStatus.SUCCESS if self.success else RunStatus.FAILURE

    def __repr__(self):
        return f"<CheckRun(repo='{self.repo}', commit='{self.commit}', stage='{self.stage.value}', success={self.success})>"
