
from .chain_discovery import ChainDescriptor, ResolutionError, resolve_chains, resolve_chains_async
from .chain_process import ChainProcess, ChainState, ProcessExitError, SpawnError
from .mesh import PeerMeshBuilder, PeeringOutcome
from .mesh_config import MeshConfig
from .orchestrator import MeshOrchestrator
from .readiness import ReadinessPoller, ReadinessTimeout
from .rpc_client import RpcClient, RpcEmptyResult, RpcError, RpcTransportError, RpcTypeMismatch
from .shutdown_coordinator import ShutdownCoordinator, ShutdownState
from .supervisor import ChainSupervisor
from .vendor import Vendor, VendorMethods

__all__ = [
    'ChainDescriptor',
    'ChainProcess',
    'ChainState',
    'ChainSupervisor',
    'MeshConfig',
    'MeshOrchestrator',
    'PeerMeshBuilder',
    'PeeringOutcome',
    'ProcessExitError',
    'ReadinessPoller',
    'ReadinessTimeout',
    'ResolutionError',
    'RpcClient',
    'RpcEmptyResult',
    'RpcError',
    'RpcTransportError',
    'RpcTypeMismatch',
    'ShutdownCoordinator',
    'ShutdownState',
    'SpawnError',
    'Vendor',
    'VendorMethods',
    'resolve_chains',
    'resolve_chains_async',
]
