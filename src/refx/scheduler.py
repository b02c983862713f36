"""Job queue: work deferred to the next flush.

Deferred computed values and custom effect schedulers push jobs here. Jobs
run in insertion order, including jobs queued while the flush is running;
the queue and its queued flag are reset only after the last one.

Who flushes:
    - inside ``@action`` / ``with transaction()``: the outermost exit;
    - otherwise the host hook installed with ``set_scheduler()``;
    - otherwise ``loop.call_soon`` on the running asyncio loop;
    - with none of those, jobs wait for an explicit ``flush_jobs()``.
"""

from __future__ import annotations

import asyncio
from typing import Callable

Job = Callable[[], object]

_queue: list[Job] = []
_queued = False

# Batch depth counter. When > 0, the flush waits for the outermost exit.
_batch_depth: int = 0

_scheduler: Callable[[Callable[[], None]], object] | None = None


def set_scheduler(scheduler: Callable[[Callable[[], None]], object] | None) -> None:
    """Install the host hook that arranges a later call to ``flush_jobs``.

    Call once from the host's main loop, e.g. ``set_scheduler(app.call_later)``.
    Pass None to restore the default.
    """
    global _scheduler
    _scheduler = scheduler


def queue_job(job: Job) -> None:
    global _queued
    _queue.append(job)
    if not _queued:
        _queued = True
        _request_flush()


def _request_flush() -> None:
    if _batch_depth > 0:
        return
    if _scheduler is not None:
        _scheduler(flush_jobs)
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    loop.call_soon(flush_jobs)


def flush_jobs() -> None:
    """Run every queued job, including ones queued during the flush.

    If a job raises, the jobs after it stay queued and another flush is
    requested before the error propagates.
    """
    global _queued
    i = 0
    try:
        while i < len(_queue):
            job = _queue[i]
            i += 1
            job()
    finally:
        del _queue[:i]
        _queued = False
        if _queue:
            _queued = True
            _request_flush()


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. When the outermost scope exits, flush queued jobs."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0 and _queue:
        flush_jobs()


def get_pending_count() -> int:
    """Number of jobs waiting to run. Useful for testing."""
    return len(_queue)
