"""
Single-flight generation queue and wall-clock timeout.

At most one generation runs at a time per queue; later submissions wait in
FIFO order. Each submission has a key (the request id) so a client can
cancel it, and a newer submission with the same key supersedes the older.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from scenario_engine.errors import GenerationCancelled, GenerationTimeout

logger = logging.getLogger(__name__)


JobFactory = Callable[[], Awaitable[Any]]


@dataclass
class _Job:
    key: str
    factory: JobFactory
    future: asyncio.Future
    task: Optional[asyncio.Task] = None


class SingleFlightQueue:
    """
    FIFO queue that runs one job at a time.

    Create one per application; it must be used from a single event loop.
    """

    def __init__(self):
        self._pending: Deque[_Job] = deque()
        self._jobs: Dict[str, _Job] = {}
        self._running: Optional[_Job] = None
        self._worker: Optional[asyncio.Task] = None
        self.completed_count = 0
        self.cancelled_count = 0

    @property
    def pending_count(self) -> int:
        return sum(1 for job in self._pending if not job.future.done())

    @property
    def running_key(self) -> Optional[str]:
        return self._running.key if self._running else None

    def __contains__(self, key: str) -> bool:
        return key in self._jobs

    async def submit(self, key: str, factory: JobFactory, supersede: bool = True) -> Any:
        """
        Queue a job and wait for its result.

        Args:
            key: Identifier used for cancellation
            factory: Creates the coroutine to run once the job reaches the front
            supersede: Cancel an earlier job submitted under the same key

        Raises:
            GenerationCancelled: If the job was cancelled or superseded
        """
        if supersede and key in self._jobs:
            logger.info(f"Generation {key} superseded by a newer request")
            self.cancel(key, reason="superseded")

        job = _Job(key=key, factory=factory, future=asyncio.get_running_loop().create_future())
        self._jobs[key] = job
        self._pending.append(job)
        self._ensure_worker()
        return await job.future

    def cancel(self, key: str, reason: str = "cancelled") -> bool:
        """
        Cancel a queued or running job.

        Returns:
            False if no job with this key is queued or running
        """
        job = self._jobs.get(key)
        if job is None:
            return False

        if not job.future.done():
            job.future.set_exception(GenerationCancelled(f"Generation {key} was {reason}"))
        if job.task is not None and not job.task.done():
            job.task.cancel()

        self._forget(job)
        self.cancelled_count += 1
        return True

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self.running_key,
            "pending": self.pending_count,
            "completed": self.completed_count,
            "cancelled": self.cancelled_count,
        }

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._drain())

    def _forget(self, job: _Job) -> None:
        if self._jobs.get(job.key) is job:
            del self._jobs[job.key]

    async def _drain(self) -> None:
        while self._pending:
            job = self._pending.popleft()
            if job.future.done():
                # Cancelled while waiting
                self._forget(job)
                continue

            self._running = job
            job.task = asyncio.ensure_future(job.factory())
            try:
                # wait() leaves the job task alone if this worker is cancelled
                await asyncio.wait({job.task})
            finally:
                self._running = None
                self._forget(job)

            if job.future.done():
                if not job.task.cancelled() and job.task.exception() is not None:
                    logger.debug(f"Cancelled generation {job.key} failed: {job.task.exception()}")
                continue

            self.completed_count += 1
            if job.task.cancelled():
                job.future.set_exception(GenerationCancelled(f"Generation {job.key} was cancelled"))
            elif job.task.exception() is not None:
                job.future.set_exception(job.task.exception())
            else:
                job.future.set_result(job.task.result())


def _consume_result(task: "asyncio.Future") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Generation finished after its timeout with {type(exc).__name__}: {exc}")


async def run_with_timeout(awaitable: Awaitable[Any], timeout_seconds: float) -> Any:
    """
    Race an awaitable against a wall-clock timeout.

    The underlying work is shielded: when the timeout wins it keeps running
    in the background and its eventual outcome is only logged. Cancelling
    the caller (a queue cancel or supersede) cancels the work as well.

    Raises:
        GenerationTimeout: If the timeout elapses first
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout_seconds)
    except asyncio.TimeoutError:
        task.add_done_callback(_consume_result)
        raise GenerationTimeout(timeout_seconds) from None
    except asyncio.CancelledError:
        task.cancel()
        raise
