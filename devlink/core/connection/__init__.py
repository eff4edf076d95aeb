"""
Device connection lifecycle.

This package ties the host USB stack, the transport backend and the
authentication client together:
- ConnectionManager owns the single session and its state machine
- ReadinessPoller decides when an authenticated session is usable
- AutoConnector decides when to connect without user interaction
- InstanceGovernor elects the one process allowed to claim the device
- ConnectionStore publishes the resulting state to observers
"""

from .store import ConnectionStore, StoreEvent, StoreObserver
from .readiness_poller import ReadinessPoller
from .connection_manager import ConnectionManager, STATE_TRANSITIONS
from .governor import InstanceGovernor
from .auto_connector import AutoConnector

__all__ = [
    # Store
    'ConnectionStore',
    'StoreEvent',
    'StoreObserver',
    # Readiness
    'ReadinessPoller',
    # Manager
    'ConnectionManager',
    'STATE_TRANSITIONS',
    # Policy
    'InstanceGovernor',
    'AutoConnector',
]
