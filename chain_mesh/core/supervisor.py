"""Group supervision for the chain processes: all live, or none."""

import asyncio
from typing import List, Optional, Sequence, Union

from .asyncio_utils import cancel_and_wait, create_logged_task
from .chain_discovery import ChainDescriptor
from .chain_process import ChainProcess, ProcessExitError, SpawnError
from .logging_utils import get_module_logger

ChainFailure = Union[SpawnError, ProcessExitError]

KILL_WAIT_TIMEOUT = 5.0


class ChainSupervisor:
    """Starts every chain concurrently and funnels failures into one channel.

    Each chain runs in its own task that spawns the process and waits for it
    to exit. Spawn errors and non-zero exits land on a single queue;
    ``wait_for_failure`` hands the first one to the caller, which is
    expected to respond with ``kill_all``. Exits caused by ``kill_all``
    are never reported.
    """

    def __init__(self, descriptors: Sequence[ChainDescriptor]):
        self.logger = get_module_logger("Supervisor")
        self.processes: List[ChainProcess] = [ChainProcess(d) for d in descriptors]
        self._failures: "asyncio.Queue[ChainFailure]" = asyncio.Queue()
        self._tasks: set = set()
        self._stopping = False

    @property
    def is_stopping(self) -> bool:
        return self._stopping

    def start(self) -> None:
        """Schedule one spawn-and-wait task per chain."""
        self.logger.info("Launching %d chain(s)", len(self.processes))
        for proc in self.processes:
            create_logged_task(
                self._run_chain(proc),
                logger=self.logger,
                context=f"chain:{proc.identity}",
                pending=self._tasks,
            )

    async def _run_chain(self, proc: ChainProcess) -> None:
        if self._stopping:
            return

        try:
            await proc.start()
        except SpawnError as e:
            self._report(e)
            return

        if self._stopping:
            # kill_all ran while this chain was still spawning.
            proc.kill()

        error = await proc.wait()
        if error is not None:
            self._report(error)

    def _report(self, error: ChainFailure) -> None:
        if self._stopping:
            self.logger.debug("Ignoring failure during shutdown: %s", error)
            return
        self.logger.error("%s", error)
        self._failures.put_nowait(error)

    async def wait_for_failure(self) -> ChainFailure:
        """Block until some chain fails to spawn or exits non-zero."""
        return await self._failures.get()

    async def kill_all(self) -> None:
        """Kill every tracked process once and wait for the chain tasks to finish.

        Safe to call repeatedly; only the first call sends signals.
        """
        if self._stopping:
            return
        self._stopping = True

        killed = [proc.identity for proc in self.processes if proc.kill()]
        self.logger.info("Killed %d chain(s): %s", len(killed), ', '.join(killed) or '-')

        tasks = set(self._tasks)
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=KILL_WAIT_TIMEOUT)
            if pending:
                self.logger.warning("%d chain task(s) still running after kill, cancelling", len(pending))
                await cancel_and_wait(*pending)

    def running(self) -> List[ChainProcess]:
        return [proc for proc in self.processes if proc.is_running()]

    def get_process(self, identity: str) -> Optional[ChainProcess]:
        for proc in self.processes:
            if proc.identity == identity:
                return proc
        return None


__all__ = ["ChainFailure", "ChainSupervisor"]
