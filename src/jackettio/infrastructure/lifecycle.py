"""Service lifecycle: background jobs, in-flight tracking and ordered drain."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Protocol

import structlog

from jackettio.domain.entities.errors import StorageUnavailable
from jackettio.infrastructure.scheduler import BackgroundJob, JobScheduler

log = structlog.get_logger(__name__)


class LifecycleState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class _Flushable(Protocol):
    async def flush(self) -> int: ...


class LifecycleManager:
    """Owns the scheduler and the shutdown sequence.

    ``STARTING -> RUNNING -> DRAINING -> STOPPED``. Drain order:

    1. stop every background job (cancel and await),
    2. flush the stream store,
    3. stop intake (``stop_intake`` callback, e.g. uvicorn ``should_exit``),
    4. wait for in-flight requests, up to ``shutdown_timeout``.

    Usage::

        lifecycle.request_started()
        try:
            ...
        finally:
            lifecycle.request_finished()
    """

    def __init__(
        self,
        *,
        scheduler: JobScheduler,
        store: _Flushable,
        shutdown_timeout: float = 10.0,
        stop_intake: Callable[[], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._store = store
        self._shutdown_timeout = shutdown_timeout
        self._stop_intake = stop_intake
        self._state = LifecycleState.STARTING
        self._exit_code = 0
        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._drain_task: asyncio.Future[None] | None = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def exit_code(self) -> int:
        return self._exit_code

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def is_ready(self) -> bool:
        return self._state is LifecycleState.RUNNING

    @property
    def scheduler(self) -> JobScheduler:
        return self._scheduler

    def set_stop_intake(self, callback: Callable[[], None]) -> None:
        self._stop_intake = callback

    # --- request tracking ---

    def request_started(self) -> None:
        self._active += 1
        self._idle.clear()

    def request_finished(self) -> None:
        self._active -= 1
        if self._active <= 0:
            self._active = 0
            self._idle.set()

    # --- transitions ---

    def start(self, jobs: Sequence[BackgroundJob]) -> None:
        if self._state is not LifecycleState.STARTING:
            raise RuntimeError(f"cannot start from state {self._state.value}")
        asyncio.get_running_loop().set_exception_handler(self._on_loop_exception)
        self._scheduler.start(jobs)
        self._state = LifecycleState.RUNNING
        log.info("lifecycle_running", jobs=[j.name for j in jobs])

    def request_drain(self, reason: str = "signal") -> None:
        """Schedule :meth:`drain` from synchronous code on the loop thread."""
        if self._drain_task is None:
            self._drain_task = asyncio.ensure_future(self._drain(reason))

    async def drain(self, reason: str = "shutdown") -> None:
        """Run the drain sequence once; later calls await the same run."""
        self.request_drain(reason)
        assert self._drain_task is not None
        await asyncio.shield(self._drain_task)

    def fail(self, reason: str) -> None:
        """Record a fatal fault: exit non-zero after draining."""
        self._exit_code = 1
        self.request_drain(reason)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        log.error(
            "uncaught_exception",
            message=context.get("message"),
            exc_info=exc if isinstance(exc, BaseException) else None,
        )
        self.fail("uncaught_exception")

    async def _drain(self, reason: str) -> None:
        self._state = LifecycleState.DRAINING
        log.info("lifecycle_draining", reason=reason, active_requests=self._active)

        await self._scheduler.stop()

        try:
            flushed = await self._store.flush()
            log.info("lifecycle_store_flushed", entries=flushed)
        except StorageUnavailable:
            log.error("lifecycle_store_flush_failed", exc_info=True)

        if self._stop_intake is not None:
            self._stop_intake()

        if self._active:
            log.info("lifecycle_waiting_for_requests", active_requests=self._active)
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=self._shutdown_timeout)
            except TimeoutError:
                log.warning(
                    "lifecycle_drain_timeout",
                    remaining_requests=self._active,
                    timeout=self._shutdown_timeout,
                )

        self._state = LifecycleState.STOPPED
        log.info("lifecycle_stopped", exit_code=self._exit_code)
