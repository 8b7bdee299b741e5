import asyncio
from typing import Any, Awaitable, Callable

import structlog

from sci.config import ConcurrencyPolicy
from sci.models import RunRequest

logger = structlog.get_logger(__name__)

GLOBAL_KEY = "*"


class RunQueue:
    """
    Serializes check runs behind one worker per concurrency key.

    With the global policy there is a single key, so at most one request is
    handled at any time across all repositories. With the per-repository
    policy each repository gets its own worker. Requests for a key are
    handled in arrival order.
    """

    def __init__(
        self,
        handler: Callable[[RunRequest], Awaitable[Any]],
        policy: ConcurrencyPolicy = ConcurrencyPolicy.GLOBAL,
        max_backlog: int = 0,
        supersede_pending: bool = False,
    ):
        self.handler = handler
        self.policy = policy
        self.max_backlog = max_backlog
        self.supersede_pending = supersede_pending
        self._queues: dict[str, asyncio.Queue[RunRequest]] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._pending: dict[str, list[RunRequest]] = {}
        self._active: set[str] = set()
        self._stopping = False

    def key_for(self, request: RunRequest) -> str:
        if self.policy is ConcurrencyPolicy.PER_REPOSITORY:
            return request.repo
        return GLOBAL_KEY

    def backlog(self, key: str = GLOBAL_KEY) -> int:
        return sum(1 for r in self._pending.get(key, []) if not r.superseded)

    def submit(self, request: RunRequest) -> bool:
        """Queue request without waiting; False if the backlog is full or stopped."""
        if self._stopping:
            logger.warning(
                "Run queue stopped, dropping request",
                repo=request.repo,
                commit=request.commit,
            )
            return False

        key = self.key_for(request)
        pending = self._pending.setdefault(key, [])

        if self.supersede_pending and request.ref:
            for other in pending:
                if (
                    not other.superseded
                    and other.repo == request.repo
                    and other.ref == request.ref
                ):
                    other.superseded = True
                    logger.info(
                        "Superseding pending run",
                        repo=other.repo,
                        ref=other.ref,
                        commit=other.commit,
                        by_commit=request.commit,
                    )

        if self.max_backlog and self.backlog(key) >= self.max_backlog:
            logger.warning(
                "Run backlog full, dropping request",
                repo=request.repo,
                commit=request.commit,
                max_backlog=self.max_backlog,
            )
            return False

        pending.append(request)
        self._queue(key).put_nowait(request)
        logger.info(
            "Queued run",
            repo=request.repo,
            commit=request.commit,
            backlog=self.backlog(key),
        )
        return True

    def _queue(self, key: str) -> asyncio.Queue[RunRequest]:
        if key not in self._queues:
            self._queues[key] = asyncio.Queue()
            self._workers[key] = asyncio.get_running_loop().create_task(
                self._work(key), name=f"sci-worker-{key}"
            )
        return self._queues[key]

    async def _work(self, key: str) -> None:
        queue = self._queues[key]
        while not self._stopping:
            request = await queue.get()
            self._active.add(key)
            try:
                self._pending[key].remove(request)
                if request.superseded:
                    logger.info(
                        "Skipping superseded run",
                        repo=request.repo,
                        commit=request.commit,
                    )
                    continue
                await self.handler(request)
            except Exception as e:
                logger.error(
                    "Check run failed",
                    repo=request.repo,
                    commit=request.commit,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                self._active.discard(key)
                queue.task_done()

    async def join(self) -> None:
        """Wait until every queued request has been handled."""
        await asyncio.gather(*(q.join() for q in list(self._queues.values())))

    async def stop(self) -> None:
        """
        Stop every worker once its current request is finished.

        Idle workers are cancelled right away and pending requests are
        dropped. A request being handled runs to completion so its
        subprocesses never outlive the process in the workspace.
        """
        self._stopping = True
        dropped = sum(self.backlog(key) for key in self._pending)
        if dropped:
            logger.warning("Dropping pending runs on shutdown", count=dropped)
        for key, task in self._workers.items():
            if key not in self._active:
                task.cancel()
        await asyncio.gather(*self._workers.values(), return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
        self._pending.clear()
