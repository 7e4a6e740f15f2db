"""Scheduler tick: decides each period whether to stop, wait, or dispatch.

``JobScheduler.tick()`` is synchronous and never awaits. It inspects queue
sizes, makes one decision, and dispatches at most one job. A dispatched job
runs as an ``asyncio.Task``; its done-callback settles the job back onto the
board on the same event loop, so board mutations never interleave.

Gates are evaluated in a fixed order:

  1. pending and running empty          → STOP_DRAINED
  2. pending empty, jobs in flight      → WAIT_IN_FLIGHT
  3. failure cap reached                → STOP_FAILURE_CAP / WAIT_FAILURE_CAP
  4. fatal blocking failure recorded    → STOP_BLOCKING_FAILED / WAIT_BLOCKING_FAILED
  5. blocking job executing             → WAIT_BLOCKED
  6. running queue full                 → WAIT_CAPACITY
  7. blocking job next, others running  → WAIT_EXCLUSIVE (if exclusive_blocking)
  8. otherwise                          → DISPATCHED
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from enum import Enum
from typing import Generic

from tempo.core.logging import get_logger
from tempo.processor.config import ProcessorConfig
from tempo.processor.jobs import JobKind
from tempo.processor.queues import JobBoard, RunningSlot
from tempo.processor.runner import J, ExecutionRunner, JobOutcome

_logger = get_logger("processor.scheduler")


class TickDecision(Enum):
    """What a single tick did."""

    DISPATCHED = "dispatched"
    WAIT_IN_FLIGHT = "wait_in_flight"
    WAIT_FAILURE_CAP = "wait_failure_cap"
    WAIT_BLOCKING_FAILED = "wait_blocking_failed"
    WAIT_BLOCKED = "wait_blocked"
    WAIT_CAPACITY = "wait_capacity"
    WAIT_EXCLUSIVE = "wait_exclusive"
    STOP_DRAINED = "stop_drained"
    STOP_FAILURE_CAP = "stop_failure_cap"
    STOP_BLOCKING_FAILED = "stop_blocking_failed"

    @property
    def is_terminal(self) -> bool:
        """True when the tick loop should end."""
        return self.name.startswith("STOP_")


class JobScheduler(Generic[J]):
    """Picks jobs off the board and hands them to the execution runner.

    Args:
        board: Queues owned by the processor.
        runner: Runs dispatched jobs.
        config: Parallelism, failure cap and blocking policy.
        on_settled: Called on the loop after each job settles (used to wake
            the tick loop early).
    """

    def __init__(
        self,
        board: JobBoard,
        runner: ExecutionRunner[J],
        config: ProcessorConfig,
        on_settled: Callable[[], None] | None = None,
    ) -> None:
        self._board = board
        self._runner = runner
        self._config = config
        self._on_settled = on_settled

        # Slot of the blocking job currently executing; None when free
        self._blocking_slot: int | None = None
        self._tasks: set[asyncio.Task[JobOutcome]] = set()
        self._last_decision: TickDecision | None = None

    # ─── Properties ───────────────────────────────────────────────

    @property
    def blocking_active(self) -> bool:
        """True while a blocking job holds the exclusive slot."""
        return self._blocking_slot is not None

    @property
    def in_flight(self) -> int:
        """Dispatched tasks that have not settled yet (survives a reset)."""
        return len(self._tasks)

    # ─── Tick ─────────────────────────────────────────────────────

    def decide(self) -> TickDecision:
        """Evaluate the gates without changing any state."""
        board = self._board
        running = board.running_count

        if board.pending_count == 0:
            return TickDecision.STOP_DRAINED if running == 0 else TickDecision.WAIT_IN_FLIGHT

        if board.failed_count >= self._config.max_failed_jobs:
            return TickDecision.STOP_FAILURE_CAP if running == 0 else TickDecision.WAIT_FAILURE_CAP

        if self._blocking_failure_recorded():
            if running == 0:
                return TickDecision.STOP_BLOCKING_FAILED
            return TickDecision.WAIT_BLOCKING_FAILED

        if self.blocking_active:
            return TickDecision.WAIT_BLOCKED

        if running >= self._config.max_parallel_jobs:
            return TickDecision.WAIT_CAPACITY

        next_job = board.peek_pending()
        if (
            self._config.exclusive_blocking
            and next_job is not None
            and next_job.is_blocking
            and running > 0
        ):
            return TickDecision.WAIT_EXCLUSIVE

        return TickDecision.DISPATCHED

    def tick(self) -> TickDecision:
        """Run one scheduling step: decide, and dispatch if allowed."""
        decision = self.decide()
        if decision is TickDecision.DISPATCHED:
            self._dispatch()
        elif decision is not self._last_decision:
            _logger.debug(
                "scheduler.decision",
                decision=decision.value,
                pending=self._board.pending_count,
                running=self._board.running_count,
                failed=self._board.failed_count,
            )
        self._last_decision = decision
        return decision

    def reset(self) -> None:
        """Release the blocking slot; in-flight tasks are left to settle."""
        self._blocking_slot = None
        self._last_decision = None

    # ─── Internal ─────────────────────────────────────────────────

    def _blocking_failure_recorded(self) -> bool:
        if not self._config.fail_on_blocking_job_error:
            return False
        failed = self._board.failed
        if not failed:
            return False
        if self._config.blocking_failure_policy == "most_recent":
            return failed[-1].is_blocking
        return any(job.is_blocking for job in reversed(failed))

    def _dispatch(self) -> RunningSlot:
        entry = self._board.pop_to_running()
        job = entry.job
        if job.is_blocking:
            self._blocking_slot = entry.slot
            coro = self._runner.launch(job, JobKind.BLOCKING)
        else:
            coro = self._runner.launch(job, JobKind.NON_BLOCKING)

        task = asyncio.get_running_loop().create_task(
            coro, name=f"tempo-job-{entry.slot}",
        )
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._settle, entry))

        _logger.debug(
            "scheduler.job_dispatched",
            job=job.name,
            kind=job.kind.value,
            slot=entry.slot,
            running=self._board.running_count,
            pending=self._board.pending_count,
        )
        return entry

    def _settle(self, entry: RunningSlot, task: asyncio.Task[JobOutcome]) -> None:
        self._tasks.discard(task)
        if self._blocking_slot == entry.slot:
            self._blocking_slot = None

        if task.cancelled():
            succeeded = False
        elif (exc := task.exception()) is not None:
            # The runner captures Exception; anything else escaping is a bug
            _logger.error(
                "scheduler.job_task_crashed",
                job=entry.job.name,
                slot=entry.slot,
                error=repr(exc),
            )
            succeeded = False
        else:
            succeeded = task.result().succeeded

        settled = self._board.settle(entry.slot, succeeded)
        if settled is not None:
            _logger.debug(
                "scheduler.job_settled",
                job=entry.job.name,
                slot=entry.slot,
                succeeded=succeeded,
                running=self._board.running_count,
            )

        if self._on_settled is not None:
            self._on_settled()


__all__ = ["JobScheduler", "TickDecision"]
