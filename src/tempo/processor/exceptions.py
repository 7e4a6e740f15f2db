"""Exception hierarchy for the job processor.

All processor exceptions inherit from ProcessorError so callers can catch
broadly or narrowly. Job execution failures are NOT exceptions at this level:
they are recorded on the job and the job moves to the failed queue.
"""

from __future__ import annotations


class ProcessorError(Exception):
    """Base exception for all processor errors."""


class ProcessorBusyError(ProcessorError):
    """Raised when ``start`` is called while another run is still active.

    Also raised when jobs are still queued from a previous run that was not
    cleaned up; call ``cleanup()`` or ``retry_upload()`` instead.
    """


class JobKindMismatchError(ProcessorError):
    """Raised when a job is handed to the execution path of the other class.

    A blocking job on the non-blocking path (or vice versa) is a programming
    error; the job's operation is never invoked.
    """


class QueueStateError(ProcessorError):
    """Raised when a queue transfer would duplicate or lose a job.

    Examples: seeding the same job twice, settling a job that is not running.
    """


class SchedulerFaultError(ProcessorError):
    """Raised from ``start`` when tick evaluation itself fails unexpectedly.

    The run is aborted and the processor is cleaned up before this is raised.
    The original exception is available as ``__cause__``.
    """
