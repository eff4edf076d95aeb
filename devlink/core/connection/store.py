"""
Connection Store - Publish-only view of the connection for the outside world.

The connection core writes to this store; everything else only observes.
Every publish replaces the snapshot with a new frozen ConnectionState and
notifies observers with a StoreEvent naming what happened.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from devlink.core.types import ConnectionState, ConnectionStatus, Metric
from devlink.core.logging_utils import get_module_logger

logger = get_module_logger("ConnectionStore")


@dataclass(frozen=True)
class StoreEvent:
    """One publish: the notification name, its value and the resulting snapshot."""
    name: str
    value: Any
    state: ConnectionState
    timestamp: datetime = field(default_factory=datetime.now)


StoreObserver = Callable[[StoreEvent], None]


class ConnectionStore:
    """
    Holds the latest ConnectionState and fans publishes out to observers.

    Usage:
        store = ConnectionStore()
        store.add_observer(lambda event: print(event.name, event.value))
        store.connecting()
        store.set_status(ConnectionStatus.CONNECTING)
    """

    def __init__(self) -> None:
        self._state = ConnectionState()
        self._observers: List[StoreObserver] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    def add_observer(self, observer: StoreObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: StoreObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _publish(self, name: str, value: Any = None, **changes: Any) -> None:
        if changes:
            self._state = replace(self._state, **changes)
        event = StoreEvent(name=name, value=value, state=self._state)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error("Store observer failed on %s: %s", name, e)

    # =========================================================================
    # Notifications
    # =========================================================================

    def connecting(self) -> None:
        self._publish("connecting")

    def connected(self) -> None:
        self._publish("connected")

    def connection_failed(self) -> None:
        self._publish("connection_failed")

    def context_reset(self) -> None:
        self._publish("context_reset")

    def reset(self) -> None:
        """Forget everything about the device; the startup gate survives."""
        self._publish(
            "reset",
            status=ConnectionStatus.IDLE,
            metric=None,
            claimed=False,
            transport_ready=False,
            product_info=None,
        )

    # =========================================================================
    # Values
    # =========================================================================

    def set_status(self, status: ConnectionStatus) -> None:
        self._publish("status", status, status=status)

    def set_checked(self, checked: bool) -> None:
        self._publish("checked", checked, checked=checked)

    def set_claimed(self, claimed: bool) -> None:
        self._publish("claimed", claimed, claimed=claimed)

    def set_product_info(self, info: Optional[Dict[str, Any]]) -> None:
        self._publish("product_info", info, product_info=info)

    def set_metric(self, metric: Metric) -> None:
        self._publish("metric", metric, metric=metric)

    def set_transport_ready(self, ready: bool) -> None:
        self._publish("transport_ready", ready, transport_ready=ready)


__all__ = ["ConnectionStore", "StoreEvent", "StoreObserver"]
