import asyncio
import os
import platform
import sys
import time
from pathlib import Path

import structlog

from sci.config import CheckConfig, settings
from sci.models import CheckRun, CheckStage

logger = structlog.get_logger(__name__)

# Pull request heads, forks included, are only reachable through refs/pull.
FETCH_REFSPECS = (
    "+refs/heads/*:refs/remotes/origin/*",
    "+refs/pull/*/head:refs/remotes/origin/pr/*",
)


async def run_command(cwd: str | Path, *cmd: str) -> tuple[str, bool]:
    """Run cmd in cwd, returning its combined stdout/stderr and success."""
    cmds = " ".join(cmd)
    logger.info("Running command", cwd=str(cwd), cmd=cmds)
    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            out, _ = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise
        output = out.decode("utf-8", errors="replace")
        ok = proc.returncode == 0
    except OSError as e:
        output = f"{e}\n"
        ok = False
    duration = time.monotonic() - start
    return f"$ {cmds}  (in {duration:.3f}s)\n{output}", ok


class CheckRunner:
    """Syncs a repository checkout and runs the configured checks in it."""

    def __init__(self, config: CheckConfig, work_dir: str | Path | None = None):
        self.config = config
        self.work_dir = Path(work_dir or settings.work_dir).absolute()

    def workspace(self, repo: str) -> Path:
        return self.work_dir / settings.github_host / repo

    def clone_url(self, repo: str) -> str:
        if self.config.use_ssh:
            return f"git@{settings.github_host}:{repo}"
        return f"https://{settings.github_host}/{repo}"

    def metadata(self, repo: str, commit: str) -> str:
        return (
            f"Commit: {commit}\n"
            f"Version: {platform.python_implementation()} {platform.python_version()}\n"
            f"Prefix: {sys.prefix}\n"
            f"Work dir: {self.work_dir}\n"
            f"Workspace: {self.workspace(repo)}\n"
            f"CPUs: {os.cpu_count()}"
        )

    async def _setup(self, run: CheckRun, cwd: Path, *cmd: str) -> bool:
        out, ok = await run_command(cwd, *cmd)
        run.outputs["setup"] += out
        return ok

    async def _sync(self, run: CheckRun, base: Path) -> bool:
        if not base.exists():
            base.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
            cloned = await self._setup(
                run,
                base.parent,
                "git",
                "clone",
                "--quiet",
                self.clone_url(run.repo),
                str(base),
            )
            if not cloned:
                return False
        return await self._setup(
            run, base, "git", "fetch", "--prune", "--quiet", "origin", *FETCH_REFSPECS
        )

    async def _stage(self, run: CheckRun, base: Path, cmds: list[list[str]]) -> bool:
        for cmd in cmds:
            if not await self._setup(run, base, *cmd):
                return False
        return True

    async def run(self, repo: str, commit: str) -> CheckRun:
        """
        Bring the workspace for repo to commit and run every check.

        A failing setup step (sync, checkout, dependencies, precompile) ends
        the run right away with only "metadata" and "setup" recorded. Check
        commands all run even when an earlier one failed; their outputs are
        stored as "cmd1", "cmd2", and so on.
        """
        run = CheckRun(repo=repo, commit=commit)
        run.outputs["metadata"] = self.metadata(repo, commit)
        base = self.workspace(repo)
        log = logger.bind(repo=repo, commit=commit)

        setup = [
            (CheckStage.SYNCING, lambda: self._sync(run, base)),
            (
                CheckStage.CHECKED_OUT,
                lambda: self._setup(run, base, "git", "checkout", "--quiet", commit),
            ),
            (
                CheckStage.DEPENDENCIES_FETCHED,
                lambda: self._stage(run, base, self.config.dependencies),
            ),
            (
                CheckStage.PRECOMPILED,
                lambda: self._stage(run, base, self.config.precompile),
            ),
        ]
        for stage, step in setup:
            run.stage = stage
            if not await step():
                log.info("Setup failed", stage=stage.value)
                run.failed_stage = stage
                run.stage = CheckStage.DONE
                run.success = False
                return run

        run.stage = CheckStage.RUNNING_CHECKS
        success = True
        for i, cmd in enumerate(self.config.checks, start=1):
            out, ok = await run_command(base, *cmd)
            run.outputs[f"cmd{i}"] = out
            if not ok:
                success = False

        run.stage = CheckStage.DONE
        run.success = success
        log.info("Checks completed", success=success)
        return run
