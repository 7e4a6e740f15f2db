"""Build upload jobs from a local file or directory tree.

Directories become blocking jobs and files non-blocking jobs. The returned
list is ordered for the processor's last-in-first-out pending queue: each
directory is picked before anything inside it, and a directory's files are
picked before its next sibling directory.
"""

from __future__ import annotations

from pathlib import Path

from tempo.core.logging import get_logger
from tempo.processor.jobs import FileOrDirectoryJob

_logger = get_logger("processor.tree")


def _walk(
    path: Path,
    root: Path,
    include_hidden: bool,
    out: list[FileOrDirectoryJob],
) -> None:
    job = FileOrDirectoryJob.for_path(path, root)
    out.append(job)
    if job.is_file:
        return

    children = []
    for child in sorted(path.iterdir(), key=lambda p: p.name):
        if child.is_symlink():
            _logger.debug("tree.symlink_skipped", path=str(child))
            continue
        if not include_hidden and child.name.startswith("."):
            continue
        children.append(child)
    job.entry_count = len(children)

    # Files first so they are queued right after their directory
    for child in sorted(children, key=lambda p: p.is_dir()):
        _walk(child, root, include_hidden, out)


def jobs_from_tree(root: Path, *, include_hidden: bool = False) -> list[FileOrDirectoryJob]:
    """Create jobs for ``root`` and everything below it.

    Args:
        root: A file or a directory.
        include_hidden: Include entries whose name starts with a dot.

    Returns:
        Jobs in pending-queue order (the root job is last, so it is
        dispatched first).

    Raises:
        FileNotFoundError: If ``root`` does not exist.
    """
    root = root.resolve()
    if not root.exists():
        raise FileNotFoundError(f"No such file or directory: {root}")

    ordered: list[FileOrDirectoryJob] = []
    _walk(root, root, include_hidden, ordered)
    ordered.reverse()

    _logger.info(
        "tree.jobs_built",
        root=str(root),
        directories=sum(1 for job in ordered if job.is_blocking),
        files=sum(1 for job in ordered if job.is_file),
    )
    return ordered


__all__ = ["jobs_from_tree"]
