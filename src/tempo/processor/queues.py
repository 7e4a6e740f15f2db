"""Job queues: pending, running, completed and failed.

The four queues are views over one ``JobBoard`` that records a single state
tag per job. Every transfer goes through a board method that checks and
updates the tag, so a job can never sit in two queues at once.

Pending is a stack: the last job added is the first one picked.
Running is keyed by slot index; slots come from a counter that is never
reset, so a job settling after a cleanup cannot remove a newer entry.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from tempo.core.logging import get_logger
from tempo.processor.exceptions import QueueStateError
from tempo.processor.jobs import Job

_logger = get_logger("processor.queues")


class JobState(Enum):
    """Queue membership of a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RunningSlot:
    """A job in the running queue and its stable slot index."""

    slot: int
    job: Job


class JobBoard:
    """Owns every job of the current run and its queue membership.

    Not thread-safe: all calls must come from the event loop thread.
    """

    def __init__(self) -> None:
        self._states: dict[Job, JobState] = {}
        self._pending: list[Job] = []
        self._running: dict[int, Job] = {}
        self._completed: list[Job] = []
        self._failed: list[Job] = []
        self._slots = itertools.count()

    # ─── Read-only views ──────────────────────────────────────────

    @property
    def pending(self) -> tuple[Job, ...]:
        return tuple(self._pending)

    @property
    def running(self) -> tuple[RunningSlot, ...]:
        return tuple(RunningSlot(slot, job) for slot, job in self._running.items())

    @property
    def completed(self) -> tuple[Job, ...]:
        return tuple(self._completed)

    @property
    def failed(self) -> tuple[Job, ...]:
        return tuple(self._failed)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def running_count(self) -> int:
        return len(self._running)

    @property
    def completed_count(self) -> int:
        return len(self._completed)

    @property
    def failed_count(self) -> int:
        return len(self._failed)

    @property
    def total(self) -> int:
        """Number of jobs on the board across all four queues."""
        return len(self._states)

    def state_of(self, job: Job) -> JobState | None:
        """Queue membership of ``job``, or None if it is not on the board."""
        return self._states.get(job)

    def peek_pending(self) -> Job | None:
        """The job the next dispatch would pick, without removing it."""
        return self._pending[-1] if self._pending else None

    # ─── Transfers ────────────────────────────────────────────────

    def seed(self, jobs: Iterable[Job]) -> int:
        """Push ``jobs`` onto pending in the given order.

        Raises:
            QueueStateError: If a job is already on the board (including
                twice in ``jobs``). Nothing is added in that case.
        """
        batch = list(jobs)
        seen: set[Job] = set()
        for job in batch:
            if job in self._states or job in seen:
                raise QueueStateError(
                    f"Job {job.name!r} is already queued "
                    f"({self._states.get(job, JobState.PENDING).value})"
                )
            seen.add(job)

        for job in batch:
            self._states[job] = JobState.PENDING
            self._pending.append(job)
        return len(batch)

    def pop_to_running(self) -> RunningSlot:
        """Move the top pending job into running under a fresh slot.

        Raises:
            QueueStateError: If pending is empty.
        """
        if not self._pending:
            raise QueueStateError("Cannot pick a job: pending queue is empty")
        job = self._pending.pop()
        slot = next(self._slots)
        self._running[slot] = job
        self._states[job] = JobState.RUNNING
        return RunningSlot(slot, job)

    def settle(self, slot: int, succeeded: bool) -> Job | None:
        """Move the job in ``slot`` to completed or failed.

        Returns the job, or None if the slot is no longer running (the board
        was cleared while the job was in flight).
        """
        job = self._running.pop(slot, None)
        if job is None:
            _logger.debug("queues.settle_unknown_slot", slot=slot)
            return None
        if succeeded:
            self._completed.append(job)
            self._states[job] = JobState.COMPLETED
        else:
            self._failed.append(job)
            self._states[job] = JobState.FAILED
        return job

    def requeue_failed(self) -> int:
        """Append every failed job to pending and empty the failed queue."""
        requeued = self._failed
        self._failed = []
        for job in requeued:
            self._states[job] = JobState.PENDING
            self._pending.append(job)
        return len(requeued)

    def discard_running(self) -> list[Job]:
        """Drop every running entry from the board and return the jobs."""
        dropped = list(self._running.values())
        self._running.clear()
        for job in dropped:
            self._states.pop(job, None)
        return dropped

    def clear(self) -> None:
        """Empty all four queues. Slot numbering continues."""
        self._states.clear()
        self._pending.clear()
        self._running.clear()
        self._completed.clear()
        self._failed.clear()


__all__ = ["JobBoard", "JobState", "RunningSlot"]
