"""Peer every chain with every other chain."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .chain_discovery import ChainDescriptor
from .logging_utils import get_module_logger
from .rpc_client import RpcError


@dataclass
class PeeringOutcome:
    """Result of peering one unordered pair.

    ``source``/``target`` name the direction of the call that produced the
    outcome; with ``fallback`` set that is the reverse of the pair order.
    """

    source: str
    target: str
    accepted: bool
    error: Optional[RpcError] = None
    fallback: bool = False


async def add_peer(source: ChainDescriptor, target: ChainDescriptor) -> bool:
    """Ask ``source`` to peer with ``target`` using ``source``'s conventions."""
    address = source.vendor.peer_address(target.enode)
    return await source.rpc_client.call_bool(source.vendor.methods.add_peer_method, [address])


class PeerMeshBuilder:
    """Issues one add-peer call per unordered pair, in pair order.

    A failed call is retried once in the reverse direction; whatever
    happens then is logged and the next pair proceeds. Only the call's
    boolean reply is checked, not actual peer counts.
    """

    def __init__(self, chains: Sequence[ChainDescriptor]):
        self.chains = list(chains)
        self.logger = get_module_logger("Mesh")

    async def _peer_pair(self, first: ChainDescriptor, second: ChainDescriptor) -> PeeringOutcome:
        try:
            accepted = await add_peer(first, second)
            return PeeringOutcome(first.identity, second.identity, accepted)
        except RpcError as e:
            self.logger.warning("%s -> %s failed (%s), trying %s -> %s",
                                first.identity, second.identity, e,
                                second.identity, first.identity)

        try:
            accepted = await add_peer(second, first)
            return PeeringOutcome(second.identity, first.identity, accepted, fallback=True)
        except RpcError as e:
            return PeeringOutcome(second.identity, first.identity, False, error=e, fallback=True)

    async def build(self) -> List[PeeringOutcome]:
        """Peer pairs (0,1), (0,2), ..., (1,2), ... once each.

        Raises:
            RuntimeError: some chain has no enode yet.
        """
        unknown = [chain.identity for chain in self.chains if not chain.is_known]
        if unknown:
            raise RuntimeError(f"Cannot build mesh before all enodes are known: {', '.join(unknown)}")

        outcomes: List[PeeringOutcome] = []
        for i, first in enumerate(self.chains):
            for second in self.chains[i + 1:]:
                outcome = await self._peer_pair(first, second)
                outcomes.append(outcome)
                if outcome.error is not None:
                    self.logger.error("Could not peer %s and %s: %s",
                                      first.identity, second.identity, outcome.error)
                elif outcome.accepted:
                    self.logger.info("Peered %s -> %s", outcome.source, outcome.target)
                else:
                    self.logger.warning("%s refused peer %s", outcome.source, outcome.target)

        accepted = sum(1 for outcome in outcomes if outcome.accepted)
        self.logger.info("Mesh complete: %d/%d pair(s) accepted", accepted, len(outcomes))
        return outcomes


__all__ = ["PeerMeshBuilder", "PeeringOutcome", "add_peer"]
