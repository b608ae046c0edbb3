"""Centralized path constants for chain-mesh."""

from __future__ import annotations

import os
from pathlib import Path

# Per-user state; overridable so CI and tests can point it elsewhere.
_USER_STATE_ENV = os.environ.get("CHAIN_MESH_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".chain_mesh")

# Configuration
CONFIG_PATH = USER_STATE_DIR / "config.txt"

# Logging
LOGS_DIR = USER_STATE_DIR / "logs"
MASTER_LOG_FILE = LOGS_DIR / "chain_mesh.log"

# Per-chain artifacts
STDOUT_LOG_SUFFIX = ".stdout.log"
IPC_SOCKET_SUFFIX = ".ipc"
LAUNCH_CONF_SUFFIX = ".conf"


def ensure_directories() -> None:
    """Create the per-user directories if they don't exist."""
    USER_STATE_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    'USER_STATE_DIR',
    'CONFIG_PATH',
    'LOGS_DIR',
    'MASTER_LOG_FILE',
    'STDOUT_LOG_SUFFIX',
    'IPC_SOCKET_SUFFIX',
    'LAUNCH_CONF_SUFFIX',
    'ensure_directories',
]
