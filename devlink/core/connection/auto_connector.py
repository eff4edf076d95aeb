"""
Auto Connector - Policy for connecting without user interaction.

Attach events and application startup only lead to a connection when this
process is the elected leader, the election has already run, and no other
attempt is in flight. The first authorized device with the expected vendor
id is assumed to be the one we want. If it lacks the vendor-specific
protocol interface it has not been prepared yet, and the user is routed to
the preparation flow instead of attempting a protocol connection.
"""

from __future__ import annotations

from typing import Optional

from devlink.core.devices.interfaces import FeatureHooks, HostUSB, NullFeatureHooks
from devlink.core.errors import DeviceUnavailable
from devlink.core.logging_utils import get_module_logger
from devlink.core.types import DeviceIdentity, UsbDevice
from .connection_manager import ConnectionManager
from .governor import InstanceGovernor

logger = get_module_logger("AutoConnector")


class AutoConnector:
    """Stateless decision layer on top of ConnectionManager."""

    def __init__(
        self,
        manager: ConnectionManager,
        host: HostUSB,
        governor: InstanceGovernor,
        hooks: Optional[FeatureHooks] = None,
    ):
        self._manager = manager
        self._host = host
        self._governor = governor
        self._hooks = hooks or NullFeatureHooks()

    @property
    def _vendor_id(self) -> int:
        return self._manager.settings.vendor_id

    @property
    def _interface_class(self) -> int:
        return self._manager.settings.interface_class

    def has_protocol_interface(self, device: UsbDevice) -> bool:
        """Devices without readable descriptors get the benefit of the doubt;
        the handshake decides whether they speak the protocol."""
        if not device.descriptors_known:
            return True
        return device.has_interface_class(self._interface_class)

    def can_auto_connect(self) -> bool:
        return (
            not self._manager.connect_in_flight
            and self._governor.checked
            and self._governor.is_leader
        )

    async def connect_or_redirect(self, device: UsbDevice) -> bool:
        """Connect if ``device`` speaks the protocol, otherwise ask for preparation."""
        if self.has_protocol_interface(device):
            return await self._manager.connect(device)

        logger.info(
            "Device %s has no interface of class 0x%02x, redirecting to preparation",
            device.identity, self._interface_class,
        )
        self._hooks.navigate_to_preparation(device)
        return False

    async def auto_connect(self) -> bool:
        if not self.can_auto_connect():
            logger.debug(
                "Auto-connect skipped (in_flight=%s, checked=%s, leader=%s)",
                self._manager.connect_in_flight,
                self._governor.checked,
                self._governor.is_leader,
            )
            return False

        devices = await self._host.list_authorized_devices()
        candidates = [device for device in devices if device.vendor_id == self._vendor_id]
        if not candidates:
            logger.debug("No authorized device with vendor 0x%04x", self._vendor_id)
            return False

        for device in candidates:
            if self.has_protocol_interface(device):
                return await self.connect_or_redirect(device)

        return await self.connect_or_redirect(candidates[0])

    async def request_and_connect(self) -> bool:
        """User-initiated connect: select a device, then connect or redirect."""
        try:
            device = await self._manager.request_device()
        except DeviceUnavailable as e:
            logger.warning("No device selected: %s", e)
            self._manager.store.connection_failed()
            return False
        except Exception as e:
            logger.error("Device request failed: %s", e)
            self._manager.store.connection_failed()
            return False

        return await self.connect_or_redirect(device)

    async def startup(self) -> bool:
        """One-time connection attempt when the application starts."""
        store = self._manager.store
        if store.state.checked or self._manager.session_active:
            return False
        store.set_checked(True)
        return await self.auto_connect()

    async def on_device_present(self, identity: DeviceIdentity) -> bool:
        logger.debug("Device %s attached, evaluating auto-connect", identity)
        return await self.auto_connect()


__all__ = ["AutoConnector"]
