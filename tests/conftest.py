"""Shared pytest configuration and fixtures for the chain-mesh test suite."""

import logging
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from chain_mesh.core.chain_discovery import ChainDescriptor  # noqa: E402
from chain_mesh.core.mesh_config import MeshConfig  # noqa: E402
from chain_mesh.core.vendor import Vendor  # noqa: E402
from tests.infrastructure.mocks.rpc_mocks import MockRpcClient  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def chains_dir(tmp_path: Path) -> Path:
    """Empty base directory for chain subdirectories."""
    base = tmp_path / "chains"
    base.mkdir()
    return base


@pytest.fixture
def mesh_config(chains_dir: Path) -> MeshConfig:
    """Config rooted at ``chains_dir`` with fast polling."""
    return MeshConfig(base_dir=chains_dir, poll_interval=0.01, rpc_timeout=2.0)


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def make_descriptor(tmp_path: Path):
    """Factory for descriptors wired to a MockRpcClient instead of a real node."""

    def _make(identity: str, vendor: Vendor = Vendor.GETH, index: int = 0) -> ChainDescriptor:
        directory = tmp_path / identity
        directory.mkdir(exist_ok=True)
        return ChainDescriptor(
            identity=identity,
            directory=directory,
            executable_path=directory / vendor.value,
            launch_args=("--rpc",),
            rpc_port=8545 + index,
            listen_port=30303 + index,
            vendor=vendor,
            rpc_client=MockRpcClient(port=8545 + index),
        )

    return _make


@pytest.fixture
def restore_root_logging():
    """Put the test runner's root handlers back after configure_logging replaced them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
