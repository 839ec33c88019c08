"""Background job scheduler owned by the lifecycle manager."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

import structlog

log = structlog.get_logger(__name__)


@dataclass
class BackgroundJob:
    """A named recurring action.

    ``last_run`` is the epoch time the action last completed (successfully
    or not); ``failures`` counts failed runs.
    """

    name: str
    period: float
    action: Callable[[], Awaitable[object]]
    run_at_start: bool = False
    last_run: float | None = None
    failures: int = 0


class JobScheduler:
    """Runs each job in its own task, sleeping ``period`` between runs.

    A failing run is logged and retried on the next tick; it never stops the
    job or the process. :meth:`stop` cancels and awaits every task, so no
    timer survives it.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._jobs: list[BackgroundJob] = []
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def jobs(self) -> list[BackgroundJob]:
        return list(self._jobs)

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    def start(self, jobs: Sequence[BackgroundJob]) -> None:
        if self._tasks:
            raise RuntimeError("scheduler already started")
        for job in jobs:
            if job.period <= 0:
                raise ValueError(f"job {job.name!r} needs a positive period")
            self._jobs.append(job)
            self._tasks[job.name] = asyncio.create_task(
                self._run_forever(job), name=f"job:{job.name}"
            )
        log.info("scheduler_started", jobs=[j.name for j in jobs])

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        if tasks:
            log.info("scheduler_stopped", jobs=len(tasks))

    async def run_once(self, job: BackgroundJob) -> bool:
        """Run *job* one time. Returns False if it raised."""
        started = self._clock()
        try:
            await job.action()
        except Exception:
            job.failures += 1
            log.error(
                "background_job_failed",
                job=job.name,
                failures=job.failures,
                exc_info=True,
            )
            return False
        finally:
            job.last_run = self._clock()
        log.debug("background_job_done", job=job.name, duration_s=round(job.last_run - started, 3))
        return True

    async def _run_forever(self, job: BackgroundJob) -> None:
        try:
            if job.run_at_start:
                await self.run_once(job)
            while True:
                await asyncio.sleep(job.period)
                await self.run_once(job)
        except asyncio.CancelledError:
            log.debug("background_job_cancelled", job=job.name)
            raise
