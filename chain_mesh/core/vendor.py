"""Node software families and the RPC conventions each one speaks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class VendorMethods:
    """RPC method table for one node family."""

    identity_method: str
    # Key holding the enode inside a mapping result; None means the
    # result itself is the enode string.
    identity_field: Optional[str]
    add_peer_method: str
    strip_discovery_suffix: bool


class Vendor(Enum):
    """Node family, picked once from the executable name.

    GETH is the primary family (``admin_*`` namespace, dashed flags);
    PARITY is the alternate one (``parity_*`` namespace).
    """

    GETH = "geth"
    PARITY = "parity"

    @classmethod
    def from_executable(cls, executable: Path) -> "Vendor":
        if Path(executable).name.lower().startswith(cls.PARITY.value):
            return cls.PARITY
        return cls.GETH

    @property
    def methods(self) -> VendorMethods:
        return _METHODS[self]

    def peer_address(self, enode: str) -> str:
        """Address form this family accepts in its add-peer call."""
        if self.methods.strip_discovery_suffix:
            return strip_discovery_suffix(enode)
        return enode

    def default_launch_args(
        self,
        *,
        directory: Path,
        identity: str,
        rpc_port: int,
        listen_port: int,
        cache_size: int,
        rpc_api: str,
        chain_name: Optional[str] = None,
    ) -> Tuple[str, ...]:
        """Arguments used when a chain directory carries no ``.conf`` file."""
        directory = Path(directory)
        if self is Vendor.PARITY:
            args: List[str] = [
                "--base-path", str(directory / "data"),
                "--chain", chain_name or identity,
                "--no-discovery",
                "--port", str(listen_port),
                "--rpc",
                "--rpcport", str(rpc_port),
                "--cache-size", str(cache_size),
                "--rpcapi", rpc_api,
                "--log-file", str(directory / "parity.log"),
            ]
        else:
            args = [
                "--data-dir", str(directory / "data"),
                "--chain", chain_name or identity,
                "--no-discover",
                "--port", str(listen_port),
                "--rpc",
                "--rpc-port", str(rpc_port),
                "--cache", str(cache_size),
                "--rpc-api", rpc_api,
                "--log-dir", str(directory / "logs"),
            ]
        return tuple(args)


_METHODS = {
    Vendor.GETH: VendorMethods(
        identity_method="admin_nodeInfo",
        identity_field="enode",
        add_peer_method="admin_addPeer",
        strip_discovery_suffix=False,
    ),
    Vendor.PARITY: VendorMethods(
        identity_method="parity_enode",
        identity_field=None,
        add_peer_method="parity_addReservedPeer",
        strip_discovery_suffix=True,
    ),
}


def strip_discovery_suffix(enode: str) -> str:
    """Drop a trailing ``?discport=...`` style query from an enode URL."""
    return enode.split('?', 1)[0]


__all__ = ["Vendor", "VendorMethods", "strip_discovery_suffix"]
