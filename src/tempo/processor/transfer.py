"""Local-directory transfer backend.

Provides the pair of job operations the processor needs to "upload" a tree
into a destination directory on the local filesystem: blocking jobs create
directories, non-blocking jobs copy files. Blocking filesystem calls run in
worker threads so the event loop keeps ticking.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from tempo.core.logging import get_logger
from tempo.processor.jobs import FileOrDirectoryJob

_logger = get_logger("processor.transfer")


class LocalTransfer:
    """Copies ``FileOrDirectoryJob`` entries below ``destination``.

    Args:
        destination: Existing or creatable directory receiving the tree.
        overwrite: Replace files that already exist at the target.
    """

    def __init__(self, destination: Path, *, overwrite: bool = True) -> None:
        self.destination = destination
        self.overwrite = overwrite

    def target_for(self, job: FileOrDirectoryJob) -> Path:
        return self.destination / job.relative_path

    async def create_directory(self, job: FileOrDirectoryJob) -> None:
        """Blocking-job operation: create the job's directory.

        Only the root job may create missing parents; any other directory
        requires its parent to exist, so a failed parent fails its children.
        """
        target = self.target_for(job)
        await asyncio.to_thread(target.mkdir, parents=job.is_root, exist_ok=True)
        _logger.debug("transfer.directory_created", target=str(target))

    async def upload_file(self, job: FileOrDirectoryJob) -> None:
        """Non-blocking-job operation: copy the job's file."""
        target = self.target_for(job)
        if job.is_root:
            await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        if not target.parent.is_dir():
            raise FileNotFoundError(f"Target directory does not exist: {target.parent}")
        if target.exists() and not self.overwrite:
            raise FileExistsError(f"Refusing to overwrite {target}")
        await asyncio.to_thread(shutil.copy2, job.path, target)
        _logger.debug("transfer.file_copied", target=str(target), size=job.size)


__all__ = ["LocalTransfer"]
