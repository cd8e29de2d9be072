from .monitor import ConnectivityMonitor
from .pending import PendingChangeTracker
from .state import ConnectivityState

__all__ = ["ConnectivityMonitor", "ConnectivityState", "PendingChangeTracker"]
