"""Job model: the unit of work handled by the processor."""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class JobKind(str, Enum):
    """Execution class of a job."""

    BLOCKING = "blocking"          # Runs alone; nothing else is picked meanwhile
    NON_BLOCKING = "non_blocking"  # Runs alongside others up to the parallel cap


@dataclass(frozen=True)
class JobError:
    """Failure record attached to a job when it moves to the failed queue."""

    message: str
    full_message: str = ""
    exception: BaseException | None = field(default=None, compare=False)

    @classmethod
    def from_exception(cls, exc: BaseException, summary: str) -> JobError:
        """Build an error record from ``exc``.

        ``message`` is ``summary`` followed by the exception text;
        ``full_message`` holds the formatted traceback.
        """
        detail = str(exc) or type(exc).__name__
        return cls(
            message=f"{summary}: {detail}" if summary else detail,
            full_message="".join(traceback.format_exception(exc)),
            exception=exc,
        )


@dataclass(eq=False)
class Job:
    """A unit of work with an immutable execution class.

    Jobs compare and hash by identity: the same object moves between queues.
    Subclass to carry payload (see ``FileOrDirectoryJob``).
    """

    kind: JobKind
    name: str = ""
    error: JobError | None = field(default=None, repr=False)
    attempts: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.kind, JobKind):
            # Accept the string value ("blocking"/"non_blocking") and nothing else
            object.__setattr__(self, "kind", JobKind(self.kind))
        if not self.name:
            self.name = f"{self.kind.value}-job"

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "kind" and "kind" in self.__dict__:
            raise AttributeError("Job.kind is immutable")
        super().__setattr__(key, value)

    @property
    def is_blocking(self) -> bool:
        return self.kind is JobKind.BLOCKING

    @property
    def is_non_blocking(self) -> bool:
        return self.kind is JobKind.NON_BLOCKING


@dataclass(eq=False)
class FileOrDirectoryJob(Job):
    """A job created from one entry of a dropped file/directory tree.

    Directories are blocking (their children need them to exist first),
    files are non-blocking.
    """

    path: Path = field(default_factory=Path)
    relative_path: Path = field(default_factory=Path)
    is_root: bool = False
    size: int = 0
    entry_count: int = 0

    @property
    def is_file(self) -> bool:
        return self.kind is JobKind.NON_BLOCKING

    @classmethod
    def for_path(cls, path: Path, root: Path) -> FileOrDirectoryJob:
        """Create the job for ``path`` found while walking ``root``."""
        is_dir = path.is_dir()
        relative = Path(path.name) if path == root else Path(root.name) / path.relative_to(root)
        return cls(
            kind=JobKind.BLOCKING if is_dir else JobKind.NON_BLOCKING,
            name=relative.as_posix(),
            path=path,
            relative_path=relative,
            is_root=path == root,
            size=0 if is_dir else path.stat().st_size,
        )


__all__ = [
    "FileOrDirectoryJob",
    "Job",
    "JobError",
    "JobKind",
]
