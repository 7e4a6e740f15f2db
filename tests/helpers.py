"""Shared test helpers for Tempo tests."""

from __future__ import annotations

import asyncio

from tempo.processor import Job, JobKind


def blocking(name: str) -> Job:
    return Job(kind=JobKind.BLOCKING, name=name)


def non_blocking(name: str) -> Job:
    return Job(kind=JobKind.NON_BLOCKING, name=name)


async def drain_loop(iterations: int = 10) -> None:
    """Give settled tasks and their done-callbacks a chance to run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


class GatedOperation:
    """Async job operation whose calls block until the test releases them.

    Jobs whose name is in ``fail`` raise ``RuntimeError`` once released.
    ``auto_release`` lets every call return immediately.
    """

    def __init__(self, fail: set[str] | None = None, *, auto_release: bool = False) -> None:
        self.fail: set[str] = set(fail or ())
        self.auto_release = auto_release
        self.started: list[Job] = []
        self._gates: dict[Job, asyncio.Event] = {}

    def _gate(self, job: Job) -> asyncio.Event:
        return self._gates.setdefault(job, asyncio.Event())

    async def __call__(self, job: Job) -> None:
        self.started.append(job)
        if not self.auto_release:
            await self._gate(job).wait()
        if job.name in self.fail:
            raise RuntimeError(f"{job.name} exploded")

    def release(self, job: Job) -> None:
        self._gate(job).set()

    def release_all(self) -> None:
        self.auto_release = True
        for gate in self._gates.values():
            gate.set()

    @property
    def started_names(self) -> list[str]:
        return [job.name for job in self.started]
