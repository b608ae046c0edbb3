import asyncio
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .logging_utils import get_module_logger
from .mesh_config import MeshConfig
from .paths import IPC_SOCKET_SUFFIX, LAUNCH_CONF_SUFFIX, STDOUT_LOG_SUFFIX
from .rpc_client import RpcClient
from .vendor import Vendor

logger = get_module_logger("ChainDiscovery")

RPC_ENABLE_FLAGS = frozenset({"rpc"})
RPC_PORT_FLAGS = frozenset({"rpcport", "rpc-port"})
LISTEN_PORT_FLAGS = frozenset({"port"})
CHAIN_FLAGS = frozenset({"chain"})

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})
_TOKEN_SPLIT = re.compile(r'[\s\\]+')


class ResolutionError(RuntimeError):
    """A chain directory could not be turned into a launchable descriptor."""


@dataclass
class ChainDescriptor:

    identity: str                    # Directory name, or --chain from its .conf
    directory: Path                  # Chain directory
    executable_path: Path            # Absolute path of the node binary
    launch_args: Tuple[str, ...]     # Passed verbatim to the binary
    rpc_port: int
    listen_port: int
    vendor: Vendor
    rpc_client: RpcClient = field(compare=False, repr=False)
    conf_path: Optional[Path] = None  # .conf the args came from, None if synthesized
    _enode: Optional[str] = field(default=None, init=False, repr=False, compare=False)

    def __repr__(self) -> str:
        return (f"ChainDescriptor(identity={self.identity}, vendor={self.vendor.value}, "
                f"rpc_port={self.rpc_port}, listen_port={self.listen_port})")

    @property
    def stdout_log(self) -> Path:
        return self.directory / f"{self.identity}{STDOUT_LOG_SUFFIX}"

    @property
    def enode(self) -> Optional[str]:
        return self._enode

    @property
    def is_known(self) -> bool:
        return self._enode is not None

    def set_enode(self, enode: str) -> None:
        """Record the node's identity address. Allowed exactly once."""
        if not enode:
            raise ValueError(f"{self.identity}: enode must be a non-empty string")
        if self._enode is not None:
            raise RuntimeError(f"{self.identity}: enode already set to {self._enode}")
        self._enode = enode


def tokenize_launch_args(text: str) -> List[str]:
    """Split a ``.conf`` body on whitespace and line-continuation backslashes."""
    return [token for token in _TOKEN_SPLIT.split(text) if token]


def _flag_name(token: str) -> Optional[str]:
    if token.startswith('--'):
        return token[2:] or None
    if token.startswith('-') and len(token) > 1:
        return token[1:]
    return None


def find_flag_value(args: Sequence[str], names: frozenset) -> Optional[str]:
    """Value of the first ``-name``/``--name`` flag, as ``--name v`` or ``--name=v``."""
    for i, token in enumerate(args):
        name = _flag_name(token)
        if name is None:
            continue
        name, sep, inline = name.partition('=')
        if name not in names:
            continue
        if sep:
            return inline
        if i + 1 < len(args) and _flag_name(args[i + 1]) is None:
            return args[i + 1]
        return None
    return None


def has_enabled_flag(args: Sequence[str], names: frozenset) -> bool:
    for token in args:
        name = _flag_name(token)
        if name is None:
            continue
        name, sep, inline = name.partition('=')
        if name in names and not (sep and inline.lower() in _FALSE_VALUES):
            return True
    return False


def _port_from_args(args: Sequence[str], names: frozenset, identity: str, label: str) -> Optional[int]:
    value = find_flag_value(args, names)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ResolutionError(f"Chain {identity}: {label} port {value!r} is not an integer") from None


def find_launch_files(directory: Path) -> Tuple[Optional[Path], Optional[Path]]:
    """Return ``(executable, conf)`` for a chain directory.

    The first user-executable regular file wins (IPC sockets excluded), as
    does the first ``.conf`` file.
    """
    executable: Optional[Path] = None
    conf: Optional[Path] = None

    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        if entry.suffix == LAUNCH_CONF_SUFFIX:
            if conf is None:
                conf = entry
            continue
        if executable is None and entry.suffix != IPC_SOCKET_SUFFIX:
            if entry.stat().st_mode & stat.S_IXUSR:
                executable = entry.absolute()

    return executable, conf


def read_launch_args(conf_path: Path) -> Tuple[str, ...]:
    try:
        text = conf_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ResolutionError(f"Failed to read launch arguments from {conf_path}: {e}") from e
    return tuple(tokenize_launch_args(text))


def resolve_chain(directory: Path, index: int, config: MeshConfig) -> ChainDescriptor:
    identity = directory.name

    try:
        executable, conf_path = find_launch_files(directory)
    except OSError as e:
        raise ResolutionError(f"Chain {identity}: cannot read {directory}: {e}") from e

    if executable is None:
        raise ResolutionError(f"Chain {identity}: no executable file found in {directory}")

    vendor = Vendor.from_executable(executable)
    default_rpc_port = config.rpc_port_base + index
    default_listen_port = config.listen_port_base + index

    if conf_path is not None:
        launch_args = read_launch_args(conf_path)
        logger.debug("Chain %s: %d argument(s) from %s", identity, len(launch_args), conf_path.name)
        explicit_chain = find_flag_value(launch_args, CHAIN_FLAGS)
        if explicit_chain:
            identity = explicit_chain
    else:
        is_parity = vendor is Vendor.PARITY
        launch_args = vendor.default_launch_args(
            directory=directory.absolute(),
            identity=identity,
            rpc_port=default_rpc_port,
            listen_port=default_listen_port,
            cache_size=config.cache_size,
            rpc_api=config.parity_rpc_api if is_parity else config.geth_rpc_api,
            chain_name=config.parity_default_chain if is_parity else None,
        )
        logger.debug("Chain %s: no %s file, using %s defaults", identity, LAUNCH_CONF_SUFFIX, vendor.value)

    if not has_enabled_flag(launch_args, RPC_ENABLE_FLAGS):
        raise ResolutionError(f"Chain {identity}: launch arguments must enable RPC (--rpc)")

    rpc_port = _port_from_args(launch_args, RPC_PORT_FLAGS, identity, "RPC")
    listen_port = _port_from_args(launch_args, LISTEN_PORT_FLAGS, identity, "listen")
    if rpc_port is None:
        rpc_port = default_rpc_port
    if listen_port is None:
        listen_port = default_listen_port

    try:
        rpc_client = RpcClient(config.rpc_host, rpc_port, timeout=config.rpc_timeout)
    except ValueError as e:
        raise ResolutionError(f"Chain {identity}: cannot create RPC client: {e}") from e

    return ChainDescriptor(
        identity=identity,
        directory=directory.absolute(),
        executable_path=executable,
        launch_args=launch_args,
        rpc_port=rpc_port,
        listen_port=listen_port,
        vendor=vendor,
        rpc_client=rpc_client,
        conf_path=conf_path,
    )


def _check_unique(chains: List[ChainDescriptor]) -> None:
    for label, key in (("identity", "identity"), ("RPC port", "rpc_port"), ("listen port", "listen_port")):
        seen: Dict[object, str] = {}
        for chain in chains:
            value = getattr(chain, key)
            if value in seen:
                raise ResolutionError(
                    f"Chains {seen[value]} and {chain.directory.name} share {label} {value}"
                )
            seen[value] = chain.directory.name


def resolve_chains(config: MeshConfig) -> List[ChainDescriptor]:
    """Build one descriptor per chain directory under ``config.base_dir``.

    Raises:
        ResolutionError: on any unreadable directory or ``.conf``, a chain
            without an executable or without RPC enabled, or clashing ports.
    """
    base_dir = config.base_dir
    if not base_dir.is_dir():
        raise ResolutionError(f"Chain base directory not found: {base_dir}")

    logger.info("Resolving chains in: %s", base_dir)

    try:
        entries = sorted(base_dir.iterdir())
    except OSError as e:
        raise ResolutionError(f"Cannot list chain base directory {base_dir}: {e}") from e

    chains: List[ChainDescriptor] = []
    for entry in entries:
        if entry.name in config.exclude:
            logger.info("Skipping excluded chain: %s", entry.name)
            continue
        if entry.name.startswith('.'):
            continue
        if not entry.is_dir():
            logger.warning("Skipping non-directory entry: %s", entry.name)
            continue

        chain = resolve_chain(entry, len(chains), config)
        chains.append(chain)
        logger.info("Resolved chain %s (%s): rpc=%d listen=%d exe=%s",
                    chain.identity, chain.vendor.value, chain.rpc_port,
                    chain.listen_port, chain.executable_path.name)

    _check_unique(chains)
    logger.info("Resolution complete: %d chain(s)", len(chains))
    return chains


async def resolve_chains_async(config: MeshConfig) -> List[ChainDescriptor]:
    """Async version of resolve_chains."""
    return await asyncio.to_thread(resolve_chains, config)
