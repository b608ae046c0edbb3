import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Dict, Optional

from chain_mesh.core import MeshConfig, MeshOrchestrator, ResolutionError
from chain_mesh.core.chain_process import ProcessExitError, SpawnError
from chain_mesh.core.config_manager import ConfigManager, split_csv
from chain_mesh.core.logging_config import configure_logging
from chain_mesh.core.logging_utils import get_module_logger
from chain_mesh.core.mesh_config import mesh_config_from_file_values
from chain_mesh.core.paths import CONFIG_PATH, MASTER_LOG_FILE, ensure_directories
from chain_mesh.core.readiness import ReadinessTimeout


logger = get_module_logger("Master")

FATAL_ERRORS = (ResolutionError, SpawnError, ProcessExitError, ReadinessTimeout)


def _config_path_from_argv(argv: Optional[list[str]]) -> Path:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=Path, default=CONFIG_PATH)
    known, _ = pre.parse_known_args(argv)
    return known.config


def parse_args(argv: Optional[list[str]], file_values: Dict[str, str]) -> argparse.Namespace:
    """Parse command-line arguments with config file defaults."""
    config_manager = ConfigManager()
    defaults = mesh_config_from_file_values(file_values, config_manager)

    parser = argparse.ArgumentParser(
        prog="chain-mesh",
        description="Launch one node per chain directory and peer them into a full mesh",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"key = value file supplying defaults for the options below (default: {CONFIG_PATH})",
    )

    parser.add_argument(
        "--base-dir",
        type=Path,
        default=defaults.base_dir,
        help="Directory holding one subdirectory per chain (default: current directory)",
    )

    parser.add_argument(
        "--exclude",
        type=split_csv,
        default=sorted(defaults.exclude),
        help="Comma-separated chain directory names to skip",
    )

    parser.add_argument("--rpc-host", default=defaults.rpc_host, help="Host the nodes serve RPC on")
    parser.add_argument("--rpc-port-base", type=int, default=defaults.rpc_port_base,
                        help="First RPC port handed to chains without an explicit one")
    parser.add_argument("--listen-port-base", type=int, default=defaults.listen_port_base,
                        help="First p2p listen port handed to chains without an explicit one")
    parser.add_argument("--cache", dest="cache_size", type=int, default=defaults.cache_size,
                        help="Cache size (MB) for synthesized launch arguments")
    parser.add_argument("--geth-rpc-api", default=defaults.geth_rpc_api,
                        help="RPC API allow-list for geth chains without a .conf")
    parser.add_argument("--parity-rpc-api", default=defaults.parity_rpc_api,
                        help="RPC API allow-list for parity chains without a .conf")
    parser.add_argument("--parity-chain", dest="parity_default_chain", default=defaults.parity_default_chain,
                        help="Chain spec for parity chains without a .conf")
    parser.add_argument("--poll-interval", type=float, default=defaults.poll_interval,
                        help="Seconds between readiness polls")
    parser.add_argument("--rpc-timeout", type=float, default=defaults.rpc_timeout,
                        help="Per-call RPC timeout in seconds")
    parser.add_argument("--ready-timeout", type=float, default=defaults.ready_timeout,
                        help="Give up if chains are not ready after this many seconds (default: wait forever)")

    parser.add_argument(
        "--list",
        action="store_true",
        help="Resolve and print the chains, then exit without launching",
    )

    parser.add_argument(
        "--log-level",
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        default=config_manager.get_str(file_values, 'log_level', default='info'),
        help="Logging level (default: info)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help=f"Master log file (default: {MASTER_LOG_FILE})",
    )

    parser.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=config_manager.get_bool(file_values, 'console_output', default=True),
        help="Also log to console",
    )

    parser.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only",
    )

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> MeshConfig:
    return MeshConfig(
        base_dir=args.base_dir.expanduser().resolve(),
        exclude=frozenset(args.exclude),
        rpc_host=args.rpc_host,
        rpc_port_base=args.rpc_port_base,
        listen_port_base=args.listen_port_base,
        cache_size=args.cache_size,
        geth_rpc_api=args.geth_rpc_api,
        parity_rpc_api=args.parity_rpc_api,
        parity_default_chain=args.parity_default_chain,
        poll_interval=args.poll_interval,
        rpc_timeout=args.rpc_timeout,
        ready_timeout=args.ready_timeout if args.ready_timeout else None,
    )


def install_signal_handlers(orchestrator: MeshOrchestrator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.request_shutdown, sig.name)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler


async def list_chains(orchestrator: MeshOrchestrator) -> None:
    chains = await orchestrator.resolve()
    for chain in chains:
        logger.info("%s [%s] rpc=%d listen=%d", chain.identity, chain.vendor.value, chain.rpc_port, chain.listen_port)
        logger.info("    exe:  %s", chain.executable_path)
        logger.info("    args: %s", ' '.join(chain.launch_args))


async def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for chain-mesh.

    Shutdown Sequence:
    1. SIGINT/SIGTERM or a failed chain triggers ShutdownCoordinator
    2. Bring-up is cancelled, every chain is killed once, RPC sessions close
    3. A failed chain makes the exit code 1; a signal makes it 0
    """
    config_path = _config_path_from_argv(argv)
    file_values = await ConfigManager().read_config_async(config_path)
    try:
        args = parse_args(argv, file_values)
    except ValueError as e:
        print(f"Invalid configuration in {config_path}: {e}", file=sys.stderr)
        return 2

    log_file = args.log_file
    if log_file is None:
        ensure_directories()
        log_file = MASTER_LOG_FILE

    configure_logging(
        args.log_level,
        console=args.console_output,
        log_file=log_file,
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    logger.info("=" * 60)
    logger.info("chain-mesh starting")
    logger.info("Base directory: %s", config.base_dir)
    if config.exclude:
        logger.info("Excluded: %s", ', '.join(sorted(config.exclude)))
    logger.info("Log file: %s", log_file)
    logger.info("=" * 60)

    orchestrator = MeshOrchestrator(config)

    try:
        if args.list:
            await list_chains(orchestrator)
            return 0

        install_signal_handlers(orchestrator)
        await orchestrator.run()
    except FATAL_ERRORS as e:
        logger.error("Fatal: %s", e)
        return 1

    logger.info("=" * 60)
    logger.info("chain-mesh stopped")
    logger.info("=" * 60)
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
