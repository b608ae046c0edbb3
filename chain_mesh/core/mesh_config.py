"""Run configuration passed explicitly into every stage of the mesh."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from .config_manager import ConfigManager

DEFAULT_RPC_HOST = "localhost"
DEFAULT_RPC_PORT_BASE = 8545
DEFAULT_LISTEN_PORT_BASE = 30303
DEFAULT_CACHE_SIZE = 128
DEFAULT_GETH_RPC_API = "eth,admin,debug,miner,net,web3,txpool"
DEFAULT_PARITY_RPC_API = "web3,eth,net,parity,parity_set,traces,rpc"
DEFAULT_PARITY_CHAIN = "classic"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_RPC_TIMEOUT = 10.0


@dataclass(frozen=True)
class MeshConfig:

    base_dir: Path
    exclude: FrozenSet[str] = field(default_factory=frozenset)
    rpc_host: str = DEFAULT_RPC_HOST
    rpc_port_base: int = DEFAULT_RPC_PORT_BASE
    listen_port_base: int = DEFAULT_LISTEN_PORT_BASE
    cache_size: int = DEFAULT_CACHE_SIZE
    geth_rpc_api: str = DEFAULT_GETH_RPC_API
    parity_rpc_api: str = DEFAULT_PARITY_RPC_API
    parity_default_chain: str = DEFAULT_PARITY_CHAIN
    poll_interval: float = DEFAULT_POLL_INTERVAL
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    ready_timeout: Optional[float] = None  # None polls until every chain answers

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_dir", Path(self.base_dir))
        object.__setattr__(self, "exclude", frozenset(self.exclude))
        if self.poll_interval < 0:
            raise ValueError(f"poll_interval must be >= 0, got {self.poll_interval}")
        if self.rpc_timeout <= 0:
            raise ValueError(f"rpc_timeout must be > 0, got {self.rpc_timeout}")
        if self.ready_timeout is not None and self.ready_timeout <= 0:
            raise ValueError(f"ready_timeout must be > 0, got {self.ready_timeout}")


def mesh_config_from_file_values(
    values: Dict[str, str],
    config_manager: Optional[ConfigManager] = None,
) -> MeshConfig:
    """Build a MeshConfig from a parsed ``key = value`` file.

    Unknown keys are ignored; missing keys take the built-in defaults.
    """
    cm = config_manager or ConfigManager()
    ready_timeout = cm.get_float(values, 'ready_timeout', default=0.0)
    return MeshConfig(
        base_dir=Path(cm.get_str(values, 'base_dir', default='.')).expanduser(),
        exclude=frozenset(cm.get_list(values, 'exclude')),
        rpc_host=cm.get_str(values, 'rpc_host', default=DEFAULT_RPC_HOST),
        rpc_port_base=cm.get_int(values, 'rpc_port_base', default=DEFAULT_RPC_PORT_BASE),
        listen_port_base=cm.get_int(values, 'listen_port_base', default=DEFAULT_LISTEN_PORT_BASE),
        cache_size=cm.get_int(values, 'cache_size', default=DEFAULT_CACHE_SIZE),
        geth_rpc_api=cm.get_str(values, 'geth_rpc_api', default=DEFAULT_GETH_RPC_API),
        parity_rpc_api=cm.get_str(values, 'parity_rpc_api', default=DEFAULT_PARITY_RPC_API),
        parity_default_chain=cm.get_str(values, 'parity_default_chain', default=DEFAULT_PARITY_CHAIN),
        poll_interval=cm.get_float(values, 'poll_interval', default=DEFAULT_POLL_INTERVAL),
        rpc_timeout=cm.get_float(values, 'rpc_timeout', default=DEFAULT_RPC_TIMEOUT),
        ready_timeout=ready_timeout if ready_timeout > 0 else None,
    )


__all__ = ["MeshConfig", "mesh_config_from_file_values"]
