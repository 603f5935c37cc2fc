"""
Integration layer.

Wires configuration, store and services together and exposes module-level
functions for callers that do not keep a coordinator instance around.
"""

from typing import Optional, Tuple

from coordinator.cancellation import CancelToken
from coordinator.config import CoordinatorConfig
from coordinator.database import create_session_factory, create_store_engine, init_db
from coordinator.records import LogicalVolumeRecord, ProvisioningRequest
from coordinator.services.volume_coordinator import VolumeCoordinator
from coordinator.store import DeclarativeStore, SQLStore

# ============================================================================
# SERVICE INTEGRATION LAYER
# ============================================================================

def get_sql_store(database_url: str) -> SQLStore:
    """SQL store on the given database, creating tables if needed."""
    engine = create_store_engine(database_url)
    init_db(engine)
    return SQLStore(create_session_factory(engine))


def build_coordinator(
    store: Optional[DeclarativeStore] = None,
    config: Optional[CoordinatorConfig] = None,
) -> VolumeCoordinator:
    """Coordinator from explicit parts, falling back to environment config and the SQL store."""
    config = config or CoordinatorConfig.from_env()
    store = store or get_sql_store(config.database_url)
    return VolumeCoordinator(store, config)


# ============================================================================
# COORDINATOR OPERATIONS
# ============================================================================

def provision_volume(
    request: ProvisioningRequest,
    timeout_seconds: float,
    coordinator: Optional[VolumeCoordinator] = None,
) -> Tuple[str, str]:
    """Provision with a deadline of `timeout_seconds`; returns (node, volume_id)."""
    coordinator = coordinator or build_coordinator()
    return coordinator.provision(request, CancelToken.with_timeout(timeout_seconds))


def deprovision_volume(volume_id: str, coordinator: Optional[VolumeCoordinator] = None) -> None:
    coordinator = coordinator or build_coordinator()
    coordinator.deprovision(volume_id)


def expand_volume(
    volume_id: str,
    new_size_text: str,
    coordinator: Optional[VolumeCoordinator] = None,
) -> LogicalVolumeRecord:
    coordinator = coordinator or build_coordinator()
    return coordinator.expand(volume_id, new_size_text)
