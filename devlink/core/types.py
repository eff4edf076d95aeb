"""
Connection Types - Shared data model for the connection lifecycle.

DeviceIdentity and the UsbDevice tree describe what the host USB stack
enumerates. ConnectionSession is the manager's private record of a live,
authenticated transport; ReadySession is the read-only view handed to
feature code once the device answers requests. ConnectionState is the
immutable snapshot published to observers.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

UNKNOWN_METRIC = "unknown"

Metric = Union[float, str, None]


class ConnectionStatus(Enum):
    """Lifecycle state of the single device connection."""
    IDLE = "idle"
    CONNECTING = "connecting"
    PROBING = "probing"          # Authenticated, waiting for the device to answer
    READY = "ready"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


# States from which a new connection attempt may begin
CONNECTABLE_STATES = frozenset({
    ConnectionStatus.IDLE,
    ConnectionStatus.FAILED,
    ConnectionStatus.DISCONNECTED,
})


@dataclass(frozen=True)
class DeviceIdentity:
    """Stable handle for one physical USB device."""
    vendor_id: int
    product_id: int
    bus_path: str                        # e.g. "1-2" or "1-2.3"
    serial_number: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.vendor_id:04x}:{self.product_id:04x}@{self.bus_path}"


@dataclass(frozen=True)
class UsbInterface:
    interface_number: int
    interface_class: int
    interface_subclass: int = 0
    interface_protocol: int = 0


@dataclass(frozen=True)
class UsbConfiguration:
    configuration_value: int
    interfaces: Tuple[UsbInterface, ...] = ()


@dataclass(frozen=True)
class UsbDevice:
    """A raw device as reported by the host USB stack.

    ``configurations`` is None when the host cannot read descriptors.
    """
    identity: DeviceIdentity
    product_name: str = ""
    manufacturer: str = ""
    configurations: Optional[Tuple[UsbConfiguration, ...]] = ()

    @property
    def vendor_id(self) -> int:
        return self.identity.vendor_id

    @property
    def descriptors_known(self) -> bool:
        return self.configurations is not None

    def has_interface_class(self, interface_class: int) -> bool:
        """True if any interface in any configuration has ``interface_class``."""
        return any(
            interface.interface_class == interface_class
            for configuration in self.configurations or ()
            for interface in configuration.interfaces
        )


@dataclass(frozen=True)
class WatcherEvent:
    """Hot-plug notification. ``identity`` is None when a device went away."""
    identity: Optional[DeviceIdentity]

    @property
    def removed(self) -> bool:
        return self.identity is None


_session_ids = itertools.count(1)


@dataclass(eq=False)
class ConnectionSession:
    """An authenticated transport owned by the ConnectionManager.

    Sessions compare by identity: two sessions for the same device are
    still different sessions.
    """
    identity: DeviceIdentity
    backend: Any
    client: Any
    session_id: int = field(default_factory=lambda: next(_session_ids))
    probe_count: int = 0
    ready: bool = False

    def next_probe(self) -> int:
        self.probe_count += 1
        return self.probe_count

    def mark_ready(self) -> bool:
        """Flip the ready flag. Returns False if it was already set."""
        if self.ready:
            return False
        self.ready = True
        return True


@dataclass(frozen=True)
class ReadySession:
    """Read-only capability for feature code once the device is ready."""
    session_id: int
    identity: DeviceIdentity
    client: Any
    product_info: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConnectionState:
    """Published snapshot of the connection, never mutated in place."""
    status: ConnectionStatus = ConnectionStatus.IDLE
    metric: Metric = None
    claimed: bool = False
    transport_ready: bool = False
    checked: bool = False
    product_info: Optional[Dict[str, Any]] = None


__all__ = [
    "UNKNOWN_METRIC",
    "Metric",
    "ConnectionStatus",
    "CONNECTABLE_STATES",
    "DeviceIdentity",
    "UsbInterface",
    "UsbConfiguration",
    "UsbDevice",
    "WatcherEvent",
    "ConnectionSession",
    "ReadySession",
    "ConnectionState",
]
