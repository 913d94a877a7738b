"""Serialized background queue of per-user refresh jobs."""

import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Awaitable, Callable, Deque, Optional, Tuple

from creator_stats.schemas import PendingJob

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


class UpdateQueue:
    """FIFO of refresh jobs drained by at most one worker at a time.

    The worker exists only while there is work: ``enqueue`` moves the queue
    from IDLE to DRAINING and spawns it, and it returns to IDLE once the queue
    is empty. Both transitions happen without an ``await`` between the check
    and the update, so concurrent enqueues can never spawn two workers.
    """

    def __init__(
        self,
        process_job: Callable[[PendingJob], Awaitable[None]],
        is_active: Callable[[int], bool]
    ):
        self._process_job = process_job
        self._is_active = is_active
        self._pending: Deque[PendingJob] = deque()
        self.state = WorkerState.IDLE
        self._task: Optional[asyncio.Task] = None
        self.processed = 0
        self.failed = 0

    @property
    def pending(self) -> Tuple[PendingJob, ...]:
        return tuple(self._pending)

    def enqueue(self, user_id: int, notify: bool = False) -> PendingJob:
        """Queue a refresh for ``user_id`` and start the worker if it is idle.

        Must be called from inside a running event loop.
        """
        job = PendingJob(user_id=user_id, notify=notify)
        self._pending.append(job)
        self._start_worker()
        return job

    def remove_user(self, user_id: int) -> int:
        """Drop every not-yet-started job for ``user_id``."""
        before = len(self._pending)
        self._pending = deque(job for job in self._pending if job.user_id != user_id)
        removed = before - len(self._pending)
        if removed:
            logger.debug(f"[Queue] Removed {removed} pending jobs for user {user_id}")
        return removed

    def _start_worker(self) -> None:
        if self.state is WorkerState.DRAINING:
            return
        self.state = WorkerState.DRAINING
        self._task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._pending:
                job = self._pending.popleft()

                if not self._is_active(job.user_id):
                    logger.debug(f"[Queue] Skipping job for inactive user {job.user_id}")
                    continue

                try:
                    await self._process_job(job)
                    self.processed += 1
                except Exception:
                    self.failed += 1
                    logger.exception(f"[Queue] Update failed for user {job.user_id}")
        finally:
            self.state = WorkerState.IDLE
            self._task = None

    async def wait_idle(self) -> None:
        """Wait until the queue is empty and no worker is running."""
        while self._task is not None:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Cancel the running worker, leaving remaining jobs queued."""
        task = self._task
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
