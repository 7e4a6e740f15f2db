"""Bounded-concurrency job processor.

Runs blocking and non-blocking jobs through caller-supplied async
operations with a parallelism cap, a failure cap, and a retry cycle.
"""

from tempo.processor.config import ProcessorConfig
from tempo.processor.exceptions import (
    JobKindMismatchError,
    ProcessorBusyError,
    ProcessorError,
    QueueStateError,
    SchedulerFaultError,
)
from tempo.processor.jobs import FileOrDirectoryJob, Job, JobError, JobKind
from tempo.processor.lifecycle import JobProcessor, ProcessorStats, RunSummary
from tempo.processor.queues import JobBoard, JobState, RunningSlot
from tempo.processor.runner import ExecutionRunner, JobOutcome
from tempo.processor.scheduler import JobScheduler, TickDecision
from tempo.processor.transfer import LocalTransfer
from tempo.processor.tree import jobs_from_tree

__all__ = [
    "ExecutionRunner",
    "FileOrDirectoryJob",
    "Job",
    "JobBoard",
    "JobError",
    "JobKind",
    "JobKindMismatchError",
    "JobOutcome",
    "JobProcessor",
    "JobScheduler",
    "JobState",
    "LocalTransfer",
    "ProcessorBusyError",
    "ProcessorConfig",
    "ProcessorError",
    "ProcessorStats",
    "QueueStateError",
    "RunSummary",
    "RunningSlot",
    "SchedulerFaultError",
    "TickDecision",
    "jobs_from_tree",
]
