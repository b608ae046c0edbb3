"""
Mesh Orchestrator - runs one mesh from chain resolution to shutdown.

Stages, in order:
1. Resolve chain directories into descriptors (fatal on error)
2. Start every chain under the ChainSupervisor
3. Poll until every chain reports an enode, concurrently with supervision
4. Peer every pair of chains
5. Wait for a chain failure or a shutdown request

Steps 3 and 4 run in one sequential bring-up task, so peering never starts
before every enode is known. A chain failure at any point ends the run with
that failure; a shutdown request ends it cleanly. Both go through the
ShutdownCoordinator, which kills the group exactly once.
"""

import asyncio
from typing import List, Optional

from .asyncio_utils import cancel_and_wait, create_logged_task
from .chain_discovery import ChainDescriptor, resolve_chains_async
from .logging_utils import get_module_logger
from .mesh import PeerMeshBuilder, PeeringOutcome
from .mesh_config import MeshConfig
from .readiness import ReadinessPoller
from .shutdown_coordinator import ShutdownCoordinator
from .supervisor import ChainSupervisor


class MeshOrchestrator:

    def __init__(
        self,
        config: MeshConfig,
        shutdown_coordinator: Optional[ShutdownCoordinator] = None,
    ):
        self.logger = get_module_logger("Orchestrator")
        self.config = config
        self.shutdown_coordinator = shutdown_coordinator or ShutdownCoordinator()

        self.chains: List[ChainDescriptor] = []
        self.supervisor: Optional[ChainSupervisor] = None
        self.poller: Optional[ReadinessPoller] = None
        self.mesh_outcomes: List[PeeringOutcome] = []

        self._bring_up_task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self._interrupted = False
        self._interrupt_source = "signal"
        self._mesh_ready = asyncio.Event()

    @property
    def mesh_ready(self) -> bool:
        return self._mesh_ready.is_set()

    async def wait_for_mesh(self) -> None:
        await self._mesh_ready.wait()

    async def resolve(self) -> List[ChainDescriptor]:
        """Resolve chain directories. Raises ResolutionError."""
        self.chains = await resolve_chains_async(self.config)
        return self.chains

    def request_shutdown(self, source: str = "signal") -> None:
        """Signal-handler entry point.

        Marks the run as interrupted immediately, so chain exits caused by
        the same signal are not treated as failures, then schedules the
        single shutdown. Repeated calls reuse the pending shutdown.
        """
        self._interrupted = True
        self._interrupt_source = source
        if self._shutdown_task is None or self._shutdown_task.done():
            self._shutdown_task = create_logged_task(
                self.shutdown_coordinator.initiate_shutdown(source),
                logger=self.logger,
                context="shutdown",
            )

    async def _bring_up(self) -> None:
        self.poller = ReadinessPoller(self.chains, interval=self.config.poll_interval)
        await self.poller.wait_until_ready(timeout=self.config.ready_timeout)

        self.mesh_outcomes = await PeerMeshBuilder(self.chains).build()
        self._mesh_ready.set()
        self.logger.info("Mesh of %d chain(s) is up; waiting for exit or signal", len(self.chains))

    async def _stop_bring_up(self) -> None:
        await cancel_and_wait(self._bring_up_task)

    async def _close_rpc_clients(self) -> None:
        for chain in self.chains:
            await chain.rpc_client.close()

    async def run(self) -> None:
        """Run the mesh until a chain fails or shutdown is requested.

        Raises:
            ResolutionError: chain directories could not be resolved.
            SpawnError, ProcessExitError: a chain failed; all others were killed.
            ReadinessTimeout: a readiness bound was configured and exceeded.
        """
        if not self.chains:
            await self.resolve()
        if not self.chains:
            self.logger.warning("No chains found in %s, nothing to do", self.config.base_dir)
            return
        if self._interrupted or self.shutdown_coordinator.is_shutting_down:
            # Shutdown requested while resolving; its cleanup had nothing to stop.
            self.logger.info("Shutdown requested before launch, not starting %d chain(s)", len(self.chains))
            await self._close_rpc_clients()
            await self.shutdown_coordinator.wait_for_shutdown()
            return

        # No await from here until the cleanups are registered and the chains scheduled.
        supervisor = ChainSupervisor(self.chains)
        self.supervisor = supervisor

        # Order matters: stop polling/peering before the nodes and clients go away.
        self.shutdown_coordinator.register_cleanup(self._stop_bring_up)
        self.shutdown_coordinator.register_cleanup(supervisor.kill_all)
        self.shutdown_coordinator.register_cleanup(self._close_rpc_clients)

        supervisor.start()
        self._bring_up_task = asyncio.create_task(self._bring_up(), name="bring-up")
        failure_task = asyncio.create_task(supervisor.wait_for_failure(), name="failure-channel")
        shutdown_task = asyncio.create_task(self.shutdown_coordinator.wait_for_shutdown(), name="shutdown-wait")

        error: Optional[BaseException] = None
        source = "run complete"
        waiting = {self._bring_up_task, failure_task, shutdown_task}
        try:
            while True:
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                if shutdown_task in done or self._interrupted or self.shutdown_coordinator.is_shutting_down:
                    source = self.shutdown_coordinator.source or self._interrupt_source
                    break

                if failure_task in done:
                    error = failure_task.result()
                    source = f"chain {getattr(error, 'identity', '?')} failure"
                    break

                if self._bring_up_task in done:
                    waiting.discard(self._bring_up_task)
                    if not self._bring_up_task.cancelled() and self._bring_up_task.exception() is not None:
                        error = self._bring_up_task.exception()
                        source = "bring-up failure"
                        break
        finally:
            await cancel_and_wait(failure_task)
            await self.shutdown_coordinator.initiate_shutdown(source)
            # A signal-triggered shutdown may still be running its cleanup.
            await self.shutdown_coordinator.wait_for_shutdown()
            await cancel_and_wait(shutdown_task)

        if error is not None:
            raise error
        self.logger.info("Run ended cleanly (%s)", source)


__all__ = ["MeshOrchestrator"]
