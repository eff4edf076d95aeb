"""
Host USB stack backed by sysfs.

On Linux every enumerated USB device appears under /sys/bus/usb/devices as
a directory named by its bus path (``1-2``, ``1-2.3``). Interfaces of the
active configuration sit next to it as ``1-2:1.0`` style entries. Reading
these attributes never touches the hardware, so it is safe to poll.

Hot-plug detection polls the set of device identities and reports the
difference, the same lightweight approach as counting sysfs entries but
precise enough to say which device appeared.

On Windows there is no sysfs; devices are enumerated through pyserial's
port listing, which exposes vendor/product ids but no interface
descriptors. Those devices carry ``configurations=None`` so callers can
tell "unknown" apart from "no such interface".
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from devlink.core.asyncio_utils import cancel_and_wait, create_logged_task
from devlink.core.errors import DeviceUnavailable
from devlink.core.types import (
    DeviceIdentity,
    UsbConfiguration,
    UsbDevice,
    UsbInterface,
)
from devlink.core.logging_utils import get_module_logger
from devlink.core.settings import DEFAULT_HOTPLUG_INTERVAL
from .interfaces import HotplugCallback

logger = get_module_logger("UsbHost")

SYSFS_USB_DEVICES = Path("/sys/bus/usb/devices")
DEV_BUS_USB = Path("/dev/bus/usb")


def _read_attr(path: Path, name: str) -> Optional[str]:
    try:
        return (path / name).read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None


def _read_hex(path: Path, name: str, default: int = 0) -> int:
    value = _read_attr(path, name)
    if not value:
        return default
    try:
        return int(value, 16)
    except ValueError:
        return default


def _is_device_entry(entry: Path) -> bool:
    # Real devices look like "1-2" or "1-2.3"; "usb1" are root hubs and
    # "1-2:1.0" are interfaces.
    return entry.is_dir() and "-" in entry.name and ":" not in entry.name


def _read_interfaces(sysfs_root: Path, bus_path: str) -> tuple[UsbConfiguration, ...]:
    by_config: Dict[int, List[UsbInterface]] = {}
    for entry in sorted(sysfs_root.glob(f"{bus_path}:*")):
        # "<bus_path>:<config>.<interface>"
        suffix = entry.name.split(":", 1)[1]
        config_part, _, _ = suffix.partition(".")
        try:
            config_value = int(config_part)
        except ValueError:
            continue
        by_config.setdefault(config_value, []).append(
            UsbInterface(
                interface_number=_read_hex(entry, "bInterfaceNumber"),
                interface_class=_read_hex(entry, "bInterfaceClass"),
                interface_subclass=_read_hex(entry, "bInterfaceSubClass"),
                interface_protocol=_read_hex(entry, "bInterfaceProtocol"),
            )
        )
    return tuple(
        UsbConfiguration(configuration_value=value, interfaces=tuple(interfaces))
        for value, interfaces in sorted(by_config.items())
    )


def read_sysfs_device(sysfs_root: Path, entry: Path) -> Optional[UsbDevice]:
    """Build a UsbDevice from one sysfs device directory."""
    vendor_id = _read_hex(entry, "idVendor", default=-1)
    product_id = _read_hex(entry, "idProduct", default=-1)
    if vendor_id < 0 or product_id < 0:
        return None

    identity = DeviceIdentity(
        vendor_id=vendor_id,
        product_id=product_id,
        bus_path=entry.name,
        serial_number=_read_attr(entry, "serial"),
    )
    return UsbDevice(
        identity=identity,
        product_name=_read_attr(entry, "product") or "",
        manufacturer=_read_attr(entry, "manufacturer") or "",
        configurations=_read_interfaces(sysfs_root, entry.name),
    )


def _list_windows_devices() -> List[UsbDevice]:
    import serial.tools.list_ports

    devices: Dict[DeviceIdentity, UsbDevice] = {}
    for port_info in serial.tools.list_ports.comports():
        if port_info.vid is None or port_info.pid is None:
            continue
        identity = DeviceIdentity(
            vendor_id=port_info.vid,
            product_id=port_info.pid,
            bus_path=port_info.location or port_info.device,
            serial_number=port_info.serial_number,
        )
        devices.setdefault(identity, UsbDevice(
            identity=identity,
            product_name=port_info.product or port_info.description or "",
            manufacturer=port_info.manufacturer or "",
            configurations=None,
        ))
    return list(devices.values())


def _matches(device: UsbDevice, filters: Sequence[Dict[str, int]]) -> bool:
    if not filters:
        return True
    identity = device.identity
    for criteria in filters:
        if "vendor_id" in criteria and criteria["vendor_id"] != identity.vendor_id:
            continue
        if "product_id" in criteria and criteria["product_id"] != identity.product_id:
            continue
        return True
    return False


class PollingHotplugSubscription:
    """Polls the device set and reports attach (identity) / detach (None).

    The first poll only records a baseline; devices already present at
    subscription time are not announced.

    Each notification runs on its own task so polling continues while a
    callback is suspended; a detach is reported even while the attach
    handler is still connecting. Disposing cancels callbacks still running.
    """

    def __init__(self, host: "SysfsUsbHost", callback: HotplugCallback, interval: float):
        self._host = host
        self._callback = callback
        self._interval = interval
        self._known: Set[DeviceIdentity] = set()
        self._dispatches: Set[asyncio.Task] = set()
        self._task: Optional[asyncio.Task] = create_logged_task(
            self._poll_loop(), logger=logger, name="usb-hotplug-poll"
        )

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def dispose(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None

        current = asyncio.current_task()
        for dispatch in list(self._dispatches):
            if dispatch is not current:
                dispatch.cancel()
        logger.debug("Hot-plug subscription disposed")

    async def aclose(self) -> None:
        task, self._task = self._task, None
        await cancel_and_wait(task)
        for dispatch in list(self._dispatches):
            await cancel_and_wait(dispatch)

    async def _snapshot(self) -> Set[DeviceIdentity]:
        devices = await asyncio.to_thread(self._host.list_watched_devices)
        return {device.identity for device in devices}

    async def _poll_loop(self) -> None:
        self._known = await self._snapshot()
        logger.debug("Hot-plug baseline: %d device(s)", len(self._known))

        while True:
            await asyncio.sleep(self._interval)
            try:
                current = await self._snapshot()
            except OSError as e:
                logger.error("Error enumerating USB devices: %s", e)
                continue

            added = current - self._known
            removed = self._known - current
            self._known = current

            # Tasks start in creation order, so removals are handled first
            for identity in sorted(removed, key=str):
                logger.info("USB device removed: %s", identity)
                self._dispatch(None)
            for identity in sorted(added, key=str):
                logger.info("USB device attached: %s", identity)
                self._dispatch(identity)

    def _dispatch(self, identity: Optional[DeviceIdentity]) -> None:
        create_logged_task(
            self._notify(identity),
            logger=logger,
            name="usb-hotplug-notify",
            pending=self._dispatches,
        )

    async def _notify(self, identity: Optional[DeviceIdentity]) -> None:
        try:
            await self._callback(identity)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in USB hot-plug callback: %s", e)


class SysfsUsbHost:
    """
    HostUSB implementation for Linux (sysfs) with a Windows fallback.

    "Authorized" devices are those the kernel has authorized and whose
    device node this process can open for read/write, i.e. devices the user
    already granted us access to.

    Hot-plug only tracks devices matching ``watch_filters`` (all devices when
    empty), so unplugging an unrelated keyboard is not reported as a
    removal.

    Usage:
        host = SysfsUsbHost(watch_filters=[{"vendor_id": 0x2ca3}])
        devices = await host.list_authorized_devices()
        subscription = host.subscribe_hotplug(on_change)
        ...
        subscription.dispose()
    """

    def __init__(
        self,
        sysfs_root: Path = SYSFS_USB_DEVICES,
        dev_root: Path = DEV_BUS_USB,
        hotplug_interval: float = DEFAULT_HOTPLUG_INTERVAL,
        watch_filters: Sequence[Dict[str, int]] = (),
        platform: str = sys.platform,
    ):
        self._sysfs_root = sysfs_root
        self._dev_root = dev_root
        self._hotplug_interval = hotplug_interval
        self._watch_filters = list(watch_filters)
        self._platform = platform

    def list_watched_devices(self) -> List[UsbDevice]:
        return [device for device in self.list_devices() if _matches(device, self._watch_filters)]

    def list_devices(self) -> List[UsbDevice]:
        """Enumerate every USB device currently attached (blocking)."""
        if self._platform == "win32":
            return _list_windows_devices()

        if not self._sysfs_root.exists():
            return []

        devices = []
        for entry in sorted(self._sysfs_root.iterdir()):
            if not _is_device_entry(entry):
                continue
            device = read_sysfs_device(self._sysfs_root, entry)
            if device is not None:
                devices.append(device)
        return devices

    def _is_authorized(self, device: UsbDevice) -> bool:
        if self._platform == "win32":
            return True

        entry = self._sysfs_root / device.identity.bus_path
        if _read_attr(entry, "authorized") == "0":
            return False

        busnum = _read_attr(entry, "busnum")
        devnum = _read_attr(entry, "devnum")
        if not busnum or not devnum:
            return False
        try:
            node = self._dev_root / f"{int(busnum):03d}" / f"{int(devnum):03d}"
        except ValueError:
            return False
        return os.access(node, os.R_OK | os.W_OK)

    def _list_authorized(self) -> List[UsbDevice]:
        return [device for device in self.list_devices() if self._is_authorized(device)]

    async def list_authorized_devices(self) -> List[UsbDevice]:
        # Authorization reads sysfs and stats device nodes; keep it off the loop
        return await asyncio.to_thread(self._list_authorized)

    async def request_device(self, filters: Sequence[Dict[str, int]]) -> UsbDevice:
        """Headless device selection: the first attached device matching ``filters``."""
        devices = await asyncio.to_thread(self.list_devices)
        for device in devices:
            if _matches(device, filters):
                logger.info("Selected USB device %s (%s)", device.identity, device.product_name)
                return device
        raise DeviceUnavailable(f"No USB device matches {list(filters)}")

    def subscribe_hotplug(self, callback: HotplugCallback) -> PollingHotplugSubscription:
        return PollingHotplugSubscription(self, callback, self._hotplug_interval)


__all__ = [
    "SysfsUsbHost",
    "PollingHotplugSubscription",
    "read_sysfs_device",
    "SYSFS_USB_DEVICES",
    "DEV_BUS_USB",
]
