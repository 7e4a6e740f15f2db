"""Execution runner: invokes the caller's per-class job operation.

The runner is the only place that checks a job's class against the path it
is being run on. It never retries; one failed invocation produces one
failed outcome.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from tempo.core.logging import get_logger
from tempo.processor.exceptions import JobKindMismatchError
from tempo.processor.jobs import Job, JobError, JobKind

_logger = get_logger("processor.runner")

J = TypeVar("J", bound=Job)

JobFn = Callable[[J], Awaitable[Any]]


@dataclass(frozen=True)
class JobOutcome:
    """Result of one job invocation."""

    succeeded: bool
    error: JobError | None = None


class ExecutionRunner(Generic[J]):
    """Runs jobs through the blocking or non-blocking operation.

    Args:
        blocking_job_fn: Async operation for blocking jobs.
        non_blocking_job_fn: Async operation for non-blocking jobs.
        failure_message: Short prefix stored in ``JobError.message``.

    A class with no operation completes its jobs without doing any work.
    """

    def __init__(
        self,
        blocking_job_fn: JobFn[J] | None = None,
        non_blocking_job_fn: JobFn[J] | None = None,
        *,
        failure_message: str = "Network Error",
    ) -> None:
        self._operations: dict[JobKind, JobFn[J] | None] = {
            JobKind.BLOCKING: blocking_job_fn,
            JobKind.NON_BLOCKING: non_blocking_job_fn,
        }
        self._failure_message = failure_message

    def launch(self, job: J, kind: JobKind) -> Coroutine[Any, Any, JobOutcome]:
        """Validate ``job`` against ``kind`` and return the coroutine running it.

        The check happens here, synchronously, so a mismatch surfaces to the
        caller before anything is scheduled.

        Raises:
            JobKindMismatchError: If ``job.kind`` is not ``kind``.
        """
        if job.kind is not kind:
            raise JobKindMismatchError(
                f"Job {job.name!r} is {job.kind.value} but was handed to the "
                f"{kind.value} path"
            )
        return self._invoke(job, self._operations[kind])

    async def _invoke(self, job: J, operation: JobFn[J] | None) -> JobOutcome:
        job.attempts += 1
        _logger.debug(
            "runner.job_started",
            job=job.name,
            kind=job.kind.value,
            attempt=job.attempts,
        )

        if operation is None:
            job.error = None
            return JobOutcome(succeeded=True)

        try:
            await operation(job)
        except asyncio.CancelledError:
            job.error = JobError(message="Cancelled")
            raise
        except Exception as exc:
            error = JobError.from_exception(exc, self._failure_message)
            job.error = error
            _logger.warning(
                "runner.job_failed",
                job=job.name,
                kind=job.kind.value,
                attempt=job.attempts,
                error=error.message,
                error_type=type(exc).__name__,
            )
            return JobOutcome(succeeded=False, error=error)

        job.error = None
        _logger.debug("runner.job_succeeded", job=job.name, kind=job.kind.value)
        return JobOutcome(succeeded=True)


__all__ = ["ExecutionRunner", "JobFn", "JobOutcome"]
