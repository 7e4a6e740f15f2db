"""Lifecycle controller: start, cleanup and retry of a processor run.

``JobProcessor`` owns the job board, the scheduler and the runner. A run
seeds the pending queue, ticks the scheduler on a fixed interval until a
terminal decision, and returns a ``RunSummary``.

Failed runs keep their state so the caller can inspect ``failed_jobs`` and
call ``retry_upload()``; clean runs reset the board automatically.

Example:
    processor = JobProcessor(
        blocking_job_fn=create_directory,
        non_blocking_job_fn=upload_file,
    )
    summary = await processor.start(jobs)
    while summary.failed and user_wants_retry():
        summary = await processor.retry_upload()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic

from tempo.core.logging import RunContext, get_logger, run_context
from tempo.processor.config import ProcessorConfig
from tempo.processor.exceptions import ProcessorBusyError, SchedulerFaultError
from tempo.processor.jobs import Job
from tempo.processor.queues import JobBoard, RunningSlot
from tempo.processor.runner import J, ExecutionRunner, JobFn
from tempo.processor.scheduler import JobScheduler, TickDecision

_logger = get_logger("processor.lifecycle")

BeforeStartHook = Callable[[list[J]], Sequence[J] | None]
CleanupHook = Callable[[], None]


@dataclass(frozen=True)
class RunSummary:
    """Outcome of one ``start``/``retry_upload`` call.

    Queue contents are captured when the tick loop ends, before any
    automatic cleanup.
    """

    run_id: str
    attempt: int
    reason: TickDecision
    completed: tuple[Job, ...]
    failed: tuple[Job, ...]
    pending: tuple[Job, ...]
    duration_seconds: float

    @property
    def succeeded(self) -> bool:
        """True when every job completed."""
        return self.reason is TickDecision.STOP_DRAINED and not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "attempt": self.attempt,
            "reason": self.reason.value,
            "succeeded": self.succeeded,
            "completed": len(self.completed),
            "failed": [
                {"job": job.name, "error": job.error.message if job.error else None}
                for job in self.failed
            ],
            "pending": len(self.pending),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class ProcessorStats:
    """Point-in-time snapshot of the processor queues."""

    is_running: bool
    pending: int
    running: int
    completed: int
    failed: int
    blocking_active: bool
    max_parallel: int

    @property
    def total(self) -> int:
        return self.pending + self.running + self.completed + self.failed


class JobProcessor(Generic[J]):
    """Drives blocking and non-blocking jobs to completion.

    Args:
        blocking_job_fn: Async operation run for each blocking job.
        non_blocking_job_fn: Async operation run for each non-blocking job.
        config: Tunables; defaults to ``ProcessorConfig()``.
        on_before_start: Called with the job list before it is queued. May
            return a replacement list; ``None`` keeps the original.
        on_cleanup: Called after every ``cleanup()``.
    """

    def __init__(
        self,
        blocking_job_fn: JobFn[J] | None = None,
        non_blocking_job_fn: JobFn[J] | None = None,
        *,
        config: ProcessorConfig | None = None,
        on_before_start: BeforeStartHook[J] | None = None,
        on_cleanup: CleanupHook | None = None,
    ) -> None:
        self._config = config or ProcessorConfig()
        self._on_before_start = on_before_start
        self._on_cleanup = on_cleanup

        self._board = JobBoard()
        self._runner: ExecutionRunner[J] = ExecutionRunner(
            blocking_job_fn,
            non_blocking_job_fn,
            failure_message=self._config.failure_message,
        )
        # Bound to the event loop of the active run; None between runs
        self._wake: asyncio.Event | None = None
        self._scheduler: JobScheduler[J] = JobScheduler(
            self._board,
            self._runner,
            self._config,
            on_settled=self._notify_settled,
        )

        self._is_running = False
        self._loop_active = False
        self._context: RunContext | None = None

    # ─── Read-only views ──────────────────────────────────────────

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def queued_jobs(self) -> tuple[Job, ...]:
        return self._board.pending

    @property
    def running_jobs(self) -> tuple[RunningSlot, ...]:
        return self._board.running

    @property
    def completed_jobs(self) -> tuple[Job, ...]:
        return self._board.completed

    @property
    def failed_jobs(self) -> tuple[Job, ...]:
        return self._board.failed

    def stats(self) -> ProcessorStats:
        """Return a snapshot of queue sizes."""
        return ProcessorStats(
            is_running=self._is_running,
            pending=self._board.pending_count,
            running=self._board.running_count,
            completed=self._board.completed_count,
            failed=self._board.failed_count,
            blocking_active=self._scheduler.blocking_active,
            max_parallel=self._config.max_parallel_jobs,
        )

    # ─── Lifecycle ────────────────────────────────────────────────

    async def start(
        self,
        jobs: Iterable[J] | None = None,
        *,
        retrying: bool = False,
    ) -> RunSummary:
        """Queue ``jobs`` and run until the scheduler reaches a terminal state.

        Args:
            jobs: Jobs to add to the pending queue. ``None`` runs whatever is
                already queued (used by ``retry_upload``).
            retrying: Continue with the existing queues instead of requiring
                an idle, empty processor.

        Returns:
            The run summary. A run that hit the failure cap or a fatal
            blocking failure still returns normally; check ``summary.failed``.

        Raises:
            ProcessorBusyError: Another run is active, or (when not retrying)
                jobs are still queued from an earlier run.
            SchedulerFaultError: Tick evaluation raised unexpectedly. The
                processor has been cleaned up.
        """
        if self._loop_active or (
            not retrying and (self._is_running or self._board.pending_count)
        ):
            _logger.error(
                "processor.start_rejected",
                is_running=self._is_running,
                pending=self._board.pending_count,
                retrying=retrying,
            )
            raise ProcessorBusyError(
                "Cannot start a run while another one is not completed"
            )

        if retrying and self._context is not None:
            ctx = self._context.next_attempt()
        else:
            ctx = RunContext()
        self._context = ctx

        with run_context(ctx):
            if jobs is not None:
                self._set_jobs(list(jobs))
            return await self._run()

    def cleanup(self) -> None:
        """Empty every queue and clear the running flag.

        Jobs still in flight keep running; when they settle they are ignored.
        """
        self._board.clear()
        self._scheduler.reset()
        self._is_running = False
        _logger.debug("processor.cleaned_up")
        if self._on_cleanup is not None:
            self._on_cleanup()

    async def retry_upload(self) -> RunSummary:
        """Re-queue failed jobs and run again.

        Failed jobs are appended to the pending queue (after any jobs that
        never started). ``start`` is called even when nothing failed.

        Raises:
            ProcessorBusyError: If a run is still active.
        """
        if self._loop_active:
            raise ProcessorBusyError("Cannot retry while a run is active")

        requeued = self._board.requeue_failed()
        dropped = self._board.discard_running()
        _logger.info(
            "processor.retry_requested",
            requeued=requeued,
            pending=self._board.pending_count,
            dropped_running=len(dropped),
        )
        return await self.start(retrying=True)

    # ─── Internal ─────────────────────────────────────────────────

    def _set_jobs(self, jobs: list[J]) -> None:
        if self._on_before_start is not None:
            replacement = self._on_before_start(jobs)
            if replacement is not None:
                jobs = list(replacement)
        self._board.seed(jobs)

    async def _run(self) -> RunSummary:
        ctx = self._context
        assert ctx is not None

        self._is_running = True
        self._loop_active = True
        wake = asyncio.Event()
        if self._config.wake_on_settle:
            # First tick runs as soon as the run starts
            wake.set()
        self._wake = wake
        started = time.monotonic()
        _logger.info(
            "processor.run_started",
            pending=self._board.pending_count,
            max_parallel=self._config.max_parallel_jobs,
        )

        try:
            reason = await self._tick_loop(wake)
        finally:
            self._wake = None
            self._loop_active = False
            self._is_running = False

        summary = RunSummary(
            run_id=ctx.run_id,
            attempt=ctx.attempt,
            reason=reason,
            completed=self._board.completed,
            failed=self._board.failed,
            pending=self._board.pending,
            duration_seconds=time.monotonic() - started,
        )
        log = _logger.info if summary.succeeded else _logger.warning
        log(
            "processor.run_finished",
            reason=reason.value,
            completed=len(summary.completed),
            failed=len(summary.failed),
            pending=len(summary.pending),
            duration_seconds=round(summary.duration_seconds, 3),
        )

        if not summary.failed:
            self.cleanup()
        return summary

    def _notify_settled(self) -> None:
        if self._wake is not None:
            self._wake.set()

    async def _tick_loop(self, wake: asyncio.Event) -> TickDecision:
        while True:
            await self._wait_for_tick(wake)
            try:
                decision = self._scheduler.tick()
            except Exception as exc:
                _logger.exception("processor.scheduler_fault", error=str(exc))
                self.cleanup()
                raise SchedulerFaultError(f"Scheduler tick failed: {exc}") from exc
            if decision.is_terminal:
                return decision
            if decision is TickDecision.DISPATCHED and self._config.wake_on_settle:
                wake.set()

    async def _wait_for_tick(self, wake: asyncio.Event) -> None:
        interval = self._config.pickup_interval_seconds
        if not self._config.wake_on_settle:
            await asyncio.sleep(interval)
            return
        try:
            await asyncio.wait_for(wake.wait(), timeout=interval)
        except TimeoutError:
            pass
        wake.clear()


__all__ = ["JobProcessor", "ProcessorStats", "RunSummary"]
