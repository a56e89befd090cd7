"""
Unit tests for the single-flight generation queue and the timeout wrapper.
"""

import asyncio

import pytest

from api.generation_queue import SingleFlightQueue, run_with_timeout
from scenario_engine.errors import GenerationCancelled, GenerationTimeout


def _job(log, name, delay=0.01, result=None, error=None):
    async def run():
        log.append(f"start {name}")
        await asyncio.sleep(delay)
        log.append(f"end {name}")
        if error is not None:
            raise error
        return result if result is not None else name
    return run


class TestSingleFlightQueue:
    """One job at a time, FIFO."""

    @pytest.mark.asyncio
    async def test_runs_one_at_a_time_in_order(self):
        """Test jobs never overlap and finish in submission order."""
        queue = SingleFlightQueue()
        log = []

        results = await asyncio.gather(
            queue.submit("a", _job(log, "a")),
            queue.submit("b", _job(log, "b")),
            queue.submit("c", _job(log, "c")),
        )

        assert results == ["a", "b", "c"]
        assert log == ["start a", "end a", "start b", "end b", "start c", "end c"]
        assert queue.completed_count == 3
        assert queue.stats() == {"running": None, "pending": 0, "completed": 3, "cancelled": 0}

    @pytest.mark.asyncio
    async def test_error_propagates_and_queue_continues(self):
        """Test a failing job does not stop the next one."""
        queue = SingleFlightQueue()
        log = []

        first = asyncio.ensure_future(queue.submit("a", _job(log, "a", error=ValueError("boom"))))
        second = asyncio.ensure_future(queue.submit("b", _job(log, "b")))

        with pytest.raises(ValueError, match="boom"):
            await first
        assert await second == "b"

    @pytest.mark.asyncio
    async def test_cancel_pending_job(self):
        """Test a queued job is cancelled before it starts."""
        queue = SingleFlightQueue()
        log = []

        first = asyncio.ensure_future(queue.submit("a", _job(log, "a", delay=0.05)))
        second = asyncio.ensure_future(queue.submit("b", _job(log, "b")))
        await asyncio.sleep(0.01)

        assert queue.running_key == "a"
        assert queue.pending_count == 1
        assert queue.cancel("b")

        with pytest.raises(GenerationCancelled):
            await second
        assert await first == "a"
        assert "start b" not in log

    @pytest.mark.asyncio
    async def test_cancel_running_job(self):
        """Test the running job's task is cancelled and the next job starts."""
        queue = SingleFlightQueue()
        log = []

        first = asyncio.ensure_future(queue.submit("a", _job(log, "a", delay=1.0)))
        second = asyncio.ensure_future(queue.submit("b", _job(log, "b")))
        await asyncio.sleep(0.01)

        assert queue.cancel("a")
        with pytest.raises(GenerationCancelled):
            await first
        assert await second == "b"
        assert "end a" not in log
        assert queue.cancelled_count == 1
        assert queue.completed_count == 1

    @pytest.mark.asyncio
    async def test_cancel_unknown_key(self):
        """Test cancelling nothing reports False."""
        assert not SingleFlightQueue().cancel("missing")

    @pytest.mark.asyncio
    async def test_same_key_supersedes(self):
        """Test a newer submission under the same key replaces the older."""
        queue = SingleFlightQueue()
        log = []

        blocker = asyncio.ensure_future(queue.submit("busy", _job(log, "busy", delay=0.05)))
        older = asyncio.ensure_future(queue.submit("req-1", _job(log, "old")))
        await asyncio.sleep(0.01)
        newer = asyncio.ensure_future(queue.submit("req-1", _job(log, "new")))

        with pytest.raises(GenerationCancelled, match="superseded"):
            await older
        assert await newer == "new"
        assert await blocker == "busy"
        assert "start old" not in log

    @pytest.mark.asyncio
    async def test_membership(self):
        """Test keys are tracked while queued or running."""
        queue = SingleFlightQueue()
        job = asyncio.ensure_future(queue.submit("a", _job([], "a")))
        await asyncio.sleep(0)

        assert "a" in queue
        await job
        assert "a" not in queue


class TestRunWithTimeout:
    """Wall-clock limit around a generation."""

    @pytest.mark.asyncio
    async def test_returns_result_in_time(self):
        """Test a fast awaitable returns its value."""
        assert await run_with_timeout(_job([], "fast")(), 1.0) == "fast"

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        """Test the timeout error message names the limit."""
        with pytest.raises(GenerationTimeout) as exc_info:
            await run_with_timeout(asyncio.sleep(0.05), 0.01)

        assert exc_info.value.timeout_seconds == 0.01
        await asyncio.sleep(0.1)
        assert str(exc_info.value) == "Generation timeout (0.01s limit)"

    @pytest.mark.asyncio
    async def test_work_continues_after_timeout(self):
        """Test the underlying work is not cancelled by the timeout."""
        log = []
        with pytest.raises(GenerationTimeout):
            await run_with_timeout(_job(log, "slow", delay=0.05)(), 0.01)

        await asyncio.sleep(0.1)
        assert log == ["start slow", "end slow"]

    def test_default_message(self):
        """Test the message for the standard two-minute limit."""
        assert str(GenerationTimeout(120)) == "Generation timeout (120s limit)"

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        """Test an exception inside the limit is re-raised."""
        with pytest.raises(ValueError):
            await run_with_timeout(_job([], "bad", error=ValueError("x"))(), 1.0)


class TestTimedJobs:
    """Timeouts applied inside queued jobs."""

    @pytest.mark.asyncio
    async def test_queue_wait_is_not_timed(self):
        """Test a job waiting behind a slow one still gets its full limit."""
        queue = SingleFlightQueue()
        log = []

        first = asyncio.ensure_future(
            queue.submit("a", lambda: run_with_timeout(_job(log, "a", delay=0.1)(), 0.15))
        )
        second = asyncio.ensure_future(
            queue.submit("b", lambda: run_with_timeout(_job(log, "b", delay=0.1)(), 0.15))
        )

        assert await first == "a"
        assert await second == "b"

    @pytest.mark.asyncio
    async def test_timed_out_job_releases_queue(self):
        """Test the next job starts once the running one times out."""
        queue = SingleFlightQueue()
        log = []

        first = asyncio.ensure_future(
            queue.submit("a", lambda: run_with_timeout(_job(log, "a", delay=0.2)(), 0.05))
        )
        second = asyncio.ensure_future(
            queue.submit("b", lambda: run_with_timeout(_job(log, "b")(), 0.05))
        )

        with pytest.raises(GenerationTimeout):
            await first
        assert await second == "b"

        await asyncio.sleep(0.25)
        assert log == ["start a", "start b", "end b", "end a"]

    @pytest.mark.asyncio
    async def test_cancel_reaches_timed_work(self):
        """Test cancelling a timed job also stops the shielded work."""
        queue = SingleFlightQueue()
        log = []

        job = asyncio.ensure_future(
            queue.submit("a", lambda: run_with_timeout(_job(log, "a", delay=1.0)(), 5.0))
        )
        await asyncio.sleep(0.01)

        assert queue.cancel("a")
        with pytest.raises(GenerationCancelled):
            await job
        await asyncio.sleep(0.01)
        assert log == ["start a"]
