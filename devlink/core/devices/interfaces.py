"""
Collaborator Interfaces - What devlink consumes from the outside world.

The transport backend, the authentication primitive, the host USB stack and
the feature layer are all supplied by the embedding application. These
protocols pin down exactly which calls the connection core makes on them.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from devlink.core.types import DeviceIdentity, ReadySession, UsbDevice
from devlink.core.logging_utils import get_module_logger

logger = get_module_logger("FeatureHooks")

HotplugCallback = Callable[[Optional[DeviceIdentity]], Awaitable[None]]


class DeviceBackend(Protocol):
    """Byte-level transport for one claimed USB device."""

    async def connect(self) -> Any:
        """Claim the device and return its byte stream."""
        ...

    async def close(self) -> None:
        ...


BackendFactory = Callable[[UsbDevice], DeviceBackend]


class DeviceSession(Protocol):
    """An authenticated protocol session on top of a backend stream."""

    async def get_metric(self) -> Optional[float]:
        """Liveness query; returns a scalar reading such as a temperature."""
        ...

    async def establish_reverse_channel(self, port: int) -> None:
        ...

    async def get_product_info(self) -> Dict[str, Any]:
        ...


class AuthClient(Protocol):

    async def authenticate(self, stream: Any, credential: Any) -> DeviceSession:
        ...


class Subscription(Protocol):

    def dispose(self) -> None:
        ...


class HostUSB(Protocol):
    """Host-side USB enumeration and hot-plug notification."""

    async def request_device(self, filters: Sequence[Dict[str, int]]) -> UsbDevice:
        """Return a device matching ``filters`` or raise DeviceUnavailable."""
        ...

    async def list_authorized_devices(self) -> List[UsbDevice]:
        ...

    def subscribe_hotplug(self, callback: HotplugCallback) -> Subscription:
        ...


class FeatureHooks(Protocol):
    """Downstream feature layer scoped to the connected device."""

    def reset_packages(self) -> None:
        ...

    def reset_healthchecks(self) -> None:
        ...

    async def check_binaries(self, session: ReadySession) -> None:
        ...

    def navigate_to_preparation(self, device: UsbDevice) -> None:
        """Send the user to the flow that makes ``device`` protocol-capable."""
        ...


class NullFeatureHooks:
    """FeatureHooks that only log, used when no feature layer is configured."""

    def reset_packages(self) -> None:
        logger.debug("Package cache reset requested")

    def reset_healthchecks(self) -> None:
        logger.debug("Health-check cache reset requested")

    async def check_binaries(self, session: ReadySession) -> None:
        logger.info("Binaries check requested for %s", session.identity)

    def navigate_to_preparation(self, device: UsbDevice) -> None:
        logger.warning(
            "Device %s has no protocol interface and needs preparation",
            device.identity,
        )


__all__ = [
    "HotplugCallback",
    "DeviceBackend",
    "BackendFactory",
    "DeviceSession",
    "AuthClient",
    "Subscription",
    "HostUSB",
    "FeatureHooks",
    "NullFeatureHooks",
]
