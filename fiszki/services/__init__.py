"""Services layer: stores, operation queue and the sync coordinator."""

from .repository import BaseStore
from .local_store import LocalStore
from .remote_store import RemoteStore
from .operation_queue import OperationQueue
from .id_mapping import IdMapping
from .sync_state import SyncState
from .connectivity import ConnectivityMonitor
from .sync_service import SyncCoordinator

__all__ = [
    "BaseStore",
    "LocalStore",
    "RemoteStore",
    "OperationQueue",
    "IdMapping",
    "SyncState",
    "ConnectivityMonitor",
    "SyncCoordinator",
]
