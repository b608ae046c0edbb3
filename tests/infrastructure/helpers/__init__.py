"""Test helpers for the chain-mesh test suite.

Chain directory builders:
    make_chain_dir - Create a chain directory with a fake node executable
    write_executable - Write a shell script and mark it user-executable

Fake node bodies:
    IDLE_NODE - Idles until killed
    CRASHING_NODE - Writes to stderr and exits with code 3
    ECHO_NODE - Echoes its arguments and exits cleanly
"""

from pathlib import Path

from tests.infrastructure.helpers.chain_dirs import (
    CRASHING_NODE,
    ECHO_NODE,
    IDLE_NODE,
    make_chain_dir,
    write_executable,
)

HELPERS_DIR = Path(__file__).parent

__all__ = [
    "CRASHING_NODE",
    "ECHO_NODE",
    "IDLE_NODE",
    "make_chain_dir",
    "write_executable",
    "HELPERS_DIR",
]
