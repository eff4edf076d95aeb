"""Hardware-free doubles for the USB host, transport and feature layer."""

from .usb_mocks import (
    OTHER_VENDOR_ID,
    VENDOR_ID,
    MockAuthClient,
    MockBackend,
    MockBackendFactory,
    MockDeviceSession,
    MockSubscription,
    MockUsbHost,
    RecordingHooks,
    make_device,
)
from .store_recorder import StoreRecorder
from .sysfs_mocks import FakeSysfs

__all__ = [
    "OTHER_VENDOR_ID",
    "VENDOR_ID",
    "MockAuthClient",
    "MockBackend",
    "MockBackendFactory",
    "MockDeviceSession",
    "MockSubscription",
    "MockUsbHost",
    "RecordingHooks",
    "make_device",
    "StoreRecorder",
    "FakeSysfs",
]
