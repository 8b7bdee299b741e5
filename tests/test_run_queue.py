import asyncio

import pytest

from sci.config import ConcurrencyPolicy
from sci.models import RunRequest
from sci.services.run_queue import GLOBAL_KEY, RunQueue


class RecordingHandler:
    def __init__(self, delay=0.01):
        self.delay = delay
        self.intervals = []
        self.handled = []

    async def __call__(self, request: RunRequest):
        loop = asyncio.get_running_loop()
        start = loop.time()
        await asyncio.sleep(self.delay)
        self.intervals.append((request.repo, start, loop.time()))
        self.handled.append(request.commit)


def overlaps(a, b):
    return a[1] < b[2] and b[1] < a[2]


@pytest.mark.asyncio
async def test_global_policy_never_overlaps():
    handler = RecordingHandler()
    queue = RunQueue(handler)

    assert queue.submit(RunRequest(repo="o/a", commit="1"))
    assert queue.submit(RunRequest(repo="o/b", commit="2"))
    assert queue.submit(RunRequest(repo="o/a", commit="3"))
    await queue.join()
    await queue.stop()

    assert handler.handled == ["1", "2", "3"]
    first, second, third = handler.intervals
    assert not overlaps(first, second)
    assert not overlaps(second, third)


@pytest.mark.asyncio
async def test_per_repository_policy():
    handler = RecordingHandler(delay=0.05)
    queue = RunQueue(handler, policy=ConcurrencyPolicy.PER_REPOSITORY)

    queue.submit(RunRequest(repo="o/a", commit="1"))
    queue.submit(RunRequest(repo="o/b", commit="2"))
    queue.submit(RunRequest(repo="o/a", commit="3"))
    await queue.join()
    await queue.stop()

    by_commit = dict(zip(handler.handled, handler.intervals))
    assert overlaps(by_commit["1"], by_commit["2"])
    assert not overlaps(by_commit["1"], by_commit["3"])


@pytest.mark.asyncio
async def test_max_backlog_rejects_requests():
    handler = RecordingHandler()
    queue = RunQueue(handler, max_backlog=2)

    assert queue.submit(RunRequest(repo="o/a", commit="1"))
    assert queue.submit(RunRequest(repo="o/a", commit="2"))
    assert not queue.submit(RunRequest(repo="o/a", commit="3"))
    assert queue.backlog(GLOBAL_KEY) == 2
    await queue.join()
    await queue.stop()

    assert handler.handled == ["1", "2"]


@pytest.mark.asyncio
async def test_supersede_pending_skips_older_requests():
    handler = RecordingHandler()
    queue = RunQueue(handler, supersede_pending=True)

    queue.submit(RunRequest(repo="o/a", commit="1", ref="refs/heads/main"))
    queue.submit(RunRequest(repo="o/a", commit="2", ref="refs/heads/dev"))
    queue.submit(RunRequest(repo="o/a", commit="3", ref="refs/heads/main"))
    assert queue.backlog() == 2
    await queue.join()
    await queue.stop()

    assert handler.handled == ["2", "3"]


@pytest.mark.asyncio
async def test_supersede_does_not_cancel_running_request():
    handler = RecordingHandler(delay=0.05)
    queue = RunQueue(handler, supersede_pending=True)

    queue.submit(RunRequest(repo="o/a", commit="1", ref="refs/heads/main"))
    await asyncio.sleep(0.01)
    queue.submit(RunRequest(repo="o/a", commit="2", ref="refs/heads/main"))
    await queue.join()
    await queue.stop()

    assert handler.handled == ["1", "2"]


@pytest.mark.asyncio
async def test_pending_requests_all_run_by_default():
    handler = RecordingHandler()
    queue = RunQueue(handler)

    for commit in ("1", "2", "3"):
        queue.submit(RunRequest(repo="o/a", commit=commit, ref="refs/heads/main"))
    await queue.join()
    await queue.stop()

    assert handler.handled == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_worker():
    handled = []

    async def handler(request):
        if request.commit == "bad":
            raise RuntimeError("gist creation failed")
        handled.append(request.commit)

    queue = RunQueue(handler)
    queue.submit(RunRequest(repo="o/a", commit="bad"))
    queue.submit(RunRequest(repo="o/a", commit="good"))
    await queue.join()
    await queue.stop()

    assert handled == ["good"]


@pytest.mark.asyncio
async def test_stop_lets_running_request_finish():
    handler = RecordingHandler(delay=0.05)
    queue = RunQueue(handler)

    queue.submit(RunRequest(repo="o/a", commit="1"))
    queue.submit(RunRequest(repo="o/a", commit="2"))
    await asyncio.sleep(0.01)
    await queue.stop()

    assert handler.handled == ["1"]


@pytest.mark.asyncio
async def test_stop_idle_queue():
    handler = RecordingHandler()
    queue = RunQueue(handler)

    queue.submit(RunRequest(repo="o/a", commit="1"))
    await queue.join()
    await asyncio.wait_for(queue.stop(), timeout=1)

    assert handler.handled == ["1"]


@pytest.mark.asyncio
async def test_submit_after_stop_is_rejected():
    handler = RecordingHandler()
    queue = RunQueue(handler)
    await queue.stop()

    assert not queue.submit(RunRequest(repo="o/a", commit="1"))
    await asyncio.sleep(0.02)
    assert handler.handled == []
