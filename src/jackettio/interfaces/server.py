"""uvicorn server whose termination signals go through the lifecycle drain."""

from __future__ import annotations

import asyncio
from types import FrameType

import structlog
import uvicorn

from jackettio.infrastructure.lifecycle import LifecycleManager, LifecycleState

log = structlog.get_logger(__name__)


class LifecycleServer(uvicorn.Server):
    """First SIGINT/SIGTERM schedules the drain; the drain stops intake.

    A second signal while draining falls through to uvicorn (forced exit on
    repeated SIGINT).
    """

    def __init__(self, config: uvicorn.Config, lifecycle: LifecycleManager) -> None:
        super().__init__(config)
        self._lifecycle = lifecycle
        self._loop: asyncio.AbstractEventLoop | None = None
        self._drain_requested = False
        lifecycle.set_stop_intake(self._stop_intake)

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def _stop_intake(self) -> None:
        self.should_exit = True

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if (
            self._drain_requested
            or self._loop is None
            or self._lifecycle.state is not LifecycleState.RUNNING
        ):
            super().handle_exit(sig, frame)
            return

        self._drain_requested = True
        log.info("shutdown_signal_received", signal=sig)
        self._loop.call_soon_threadsafe(self._lifecycle.request_drain, f"signal_{sig}")
