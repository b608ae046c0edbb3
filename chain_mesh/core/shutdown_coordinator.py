"""
Shutdown Coordinator - single shutdown path for the chain group.

Every trigger (SIGINT/SIGTERM, a failed chain, the end of ``main``) funnels
through ``initiate_shutdown``. The first call runs the registered cleanup
callbacks; later calls are no-ops, so a second signal never touches
processes or channels that are already torn down.
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from .logging_utils import get_module_logger


class ShutdownState(Enum):
    """States of the shutdown process."""
    RUNNING = "running"
    REQUESTED = "requested"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class ShutdownCoordinator:
    """
    Runs cleanup exactly once, in registration order.

    Shutdown sequence:
    1. A signal or failure calls initiate_shutdown(source)
    2. State transitions to REQUESTED, then IN_PROGRESS
    3. Cleanup callbacks run in order; errors are logged, not raised
    4. State transitions to COMPLETE and waiters are released
    """

    def __init__(self):
        self.logger = get_module_logger("ShutdownCoordinator")
        self._state = ShutdownState.RUNNING
        self._source: Optional[str] = None
        self._shutdown_event = asyncio.Event()
        self._cleanup_callbacks: list[Callable[[], Awaitable[None]]] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def source(self) -> Optional[str]:
        """What triggered the shutdown, if anything has."""
        return self._source

    @property
    def is_shutting_down(self) -> bool:
        return self._state != ShutdownState.RUNNING

    @property
    def is_complete(self) -> bool:
        return self._state == ShutdownState.COMPLETE

    def register_cleanup(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Register an async cleanup callback; callbacks run in registration order."""
        self._cleanup_callbacks.append(callback)
        self.logger.debug("Registered cleanup callback: %s", _callback_name(callback))

    async def initiate_shutdown(self, source: str = "unknown") -> bool:
        """
        Start shutdown unless it already started.

        Args:
            source: Description of what triggered shutdown (for logging)

        Returns:
            True if this call performed the shutdown, False if it was a no-op.
        """
        shutdown_start = time.monotonic()

        async with self._lock:
            if self._state != ShutdownState.RUNNING:
                self.logger.debug("Shutdown already initiated by %s (state=%s), ignoring request from %s",
                                  self._source, self._state.value, source)
                return False

            self.logger.info("Shutdown initiated by: %s", source)
            self._state = ShutdownState.REQUESTED
            self._source = source

        await self._execute_cleanup()

        async with self._lock:
            self._state = ShutdownState.COMPLETE
            self._shutdown_event.set()

        self.logger.info("Shutdown complete in %.3fs", time.monotonic() - shutdown_start)
        return True

    async def _execute_cleanup(self) -> None:
        async with self._lock:
            self._state = ShutdownState.IN_PROGRESS

        total = len(self._cleanup_callbacks)
        for i, callback in enumerate(self._cleanup_callbacks, 1):
            name = _callback_name(callback)
            try:
                callback_start = time.monotonic()
                self.logger.debug("Starting cleanup %d/%d: %s", i, total, name)
                await callback()
                self.logger.debug("Completed %s in %.3fs", name, time.monotonic() - callback_start)
            except Exception as e:
                self.logger.error("Error in cleanup callback %s: %s", name, e, exc_info=True)

    async def wait_for_shutdown(self) -> None:
        """Block until shutdown has completed."""
        await self._shutdown_event.wait()


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or getattr(callback, "__name__", repr(callback))
