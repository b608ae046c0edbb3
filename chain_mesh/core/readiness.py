"""Wait for every chain to report its enode."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from .chain_discovery import ChainDescriptor
from .logging_utils import get_module_logger
from .rpc_client import RpcEmptyResult, RpcError, RpcTransportError


class ReadinessTimeout(TimeoutError):
    """Some chains never reported an enode within the readiness bound."""

    def __init__(self, pending: Sequence[str], timeout: float) -> None:
        super().__init__(f"Chains not ready after {timeout:.1f}s: {', '.join(pending)}")
        self.pending = list(pending)
        self.timeout = timeout


async def query_enode(chain: ChainDescriptor) -> str:
    """Ask a node for its enode using its vendor's identity method.

    Raises:
        RpcError: the call failed, or the reply had no usable enode.
    """
    methods = chain.vendor.methods
    if methods.identity_field is None:
        enode = await chain.rpc_client.call_string(methods.identity_method)
    else:
        info = await chain.rpc_client.call_mapping(methods.identity_method)
        enode = info.get(methods.identity_field)
        if not isinstance(enode, str):
            raise RpcEmptyResult(methods.identity_method, f"no {methods.identity_field!r} in result")

    if not enode:
        raise RpcEmptyResult(methods.identity_method, "empty enode")
    return enode


class ReadinessPoller:
    """Polls unknown chains on a fixed interval until all report an enode.

    This is the only writer of ``ChainDescriptor.enode``. Once
    ``wait_until_ready`` returns, enodes are fixed and safe to read.
    """

    def __init__(self, chains: Sequence[ChainDescriptor], interval: float = 1.0):
        self.chains = list(chains)
        self.interval = interval
        self.ticks = 0
        self.logger = get_module_logger("Readiness")

    def pending(self) -> List[ChainDescriptor]:
        return [chain for chain in self.chains if not chain.is_known]

    @property
    def all_known(self) -> bool:
        return not self.pending()

    async def poll_once(self) -> int:
        """Run one tick; return how many chains are still unknown."""
        self.ticks += 1
        pending = self.pending()
        if not pending:
            return 0

        results = await asyncio.gather(
            *(query_enode(chain) for chain in pending),
            return_exceptions=True,
        )

        for chain, result in zip(pending, results):
            if isinstance(result, RpcTransportError):
                # Expected while the node is still booting.
                self.logger.debug("%s not answering yet (tick %d): %s", chain.identity, self.ticks, result)
            elif isinstance(result, RpcError):
                self.logger.warning("%s identity query failed (tick %d): %s", chain.identity, self.ticks, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                chain.set_enode(result)
                self.logger.info("%s ready: %s", chain.identity, result)

        return len(self.pending())

    async def _poll_until_known(self) -> None:
        while await self.poll_once():
            await asyncio.sleep(self.interval)

    async def wait_until_ready(self, timeout: Optional[float] = None) -> None:
        """Block until every chain has an enode.

        Unbounded by default; a node that never comes up keeps this waiting
        until the task is cancelled. With ``timeout`` set, raises
        ReadinessTimeout naming the chains still unknown.
        """
        self.logger.info("Waiting for %d chain(s) to report an enode", len(self.pending()))
        if timeout is None:
            await self._poll_until_known()
        else:
            try:
                await asyncio.wait_for(self._poll_until_known(), timeout=timeout)
            except asyncio.TimeoutError:
                raise ReadinessTimeout([c.identity for c in self.pending()], timeout) from None
        self.logger.info("All %d chain(s) ready after %d tick(s)", len(self.chains), self.ticks)


__all__ = ["ReadinessPoller", "ReadinessTimeout", "query_enode"]
