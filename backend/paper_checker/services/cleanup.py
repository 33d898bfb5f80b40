"""
Deferred artifact cleanup.

Each scheduled cleanup is an asyncio task that sleeps for the retention
window and then deletes the submission's artifact directory. The request
path never awaits it.

Guarantees (best effort, not a durable job queue):
  - never deletes before the delay has elapsed
  - scheduling the same submission twice cancels the earlier timer and
    starts a new one, so deletion happens once
  - timers are lost if the process restarts; shutdown() cancels them

The sleep function is injectable so tests can drive a fake clock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol

from paper_checker.schemas.submissions import SUBMISSION_ID_PREFIX

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class SubmissionDeleter(Protocol):
    async def delete_submission(self, submission_id: str) -> int: ...


@dataclass
class CleanupHandle:
    """Internal handle for one pending cleanup."""
    submission_id: str
    delay:         float
    task:          asyncio.Task = field(repr=False)

    def cancel(self) -> None:
        self.task.cancel()

    @property
    def done(self) -> bool:
        return self.task.done()


class CleanupScheduler:

    def __init__(
        self,
        storage: SubmissionDeleter,
        default_delay: float = 24 * 60 * 60,
        sleep: SleepFn | None = None,
    ) -> None:
        self._storage       = storage
        self._default_delay = default_delay
        self._sleep         = sleep or asyncio.sleep
        self._handles: dict[str, CleanupHandle] = {}

    def schedule_cleanup(self, submission_id: str, delay: float | None = None) -> CleanupHandle | None:
        """
        Register a deferred deletion of every artifact under `submission_id`.
        Must be called from within a running event loop.
        """
        if not submission_id or not submission_id.startswith(SUBMISSION_ID_PREFIX):
            logger.warning("Invalid submission id for cleanup scheduling: %r", submission_id)
            return None

        delay = self._default_delay if delay is None else delay

        existing = self._handles.get(submission_id)
        if existing is not None and not existing.done:
            logger.info("Cleanup rescheduled | submission=%s delay_s=%.0f", submission_id, delay)
            existing.cancel()

        task = asyncio.get_running_loop().create_task(
            self._run(submission_id, delay),
            name=f"cleanup-{submission_id}",
        )
        handle = CleanupHandle(submission_id=submission_id, delay=delay, task=task)
        self._handles[submission_id] = handle
        logger.info(
            "Cleanup scheduled | submission=%s delay_h=%.2f",
            submission_id, delay / 3600,
        )
        return handle

    def cancel(self, submission_id: str) -> bool:
        handle = self._handles.pop(submission_id, None)
        if handle is None or handle.done:
            return False
        handle.cancel()
        return True

    def is_scheduled(self, submission_id: str) -> bool:
        handle = self._handles.get(submission_id)
        return handle is not None and not handle.done

    def pending(self) -> list[str]:
        return [sid for sid, h in self._handles.items() if not h.done]

    async def shutdown(self) -> None:
        """Cancel every pending timer (scheduled cleanups do not survive restarts)."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)
            logger.info("Cleanup scheduler stopped | cancelled=%d", len(handles))

    async def _run(self, submission_id: str, delay: float) -> None:
        await self._sleep(delay)

        current = self._handles.get(submission_id)
        if current is not None and current.task is asyncio.current_task():
            self._handles.pop(submission_id, None)

        logger.info("Cleanup starting | submission=%s", submission_id)
        try:
            await self._storage.delete_submission(submission_id)
        except Exception:
            logger.exception("Cleanup failed | submission=%s", submission_id)
