"""
Host-side device access for devlink.

Enumeration and hot-plug notification of USB devices, plus the protocols
for the collaborators (transport backend, authentication, feature layer)
that the connection core drives.
"""

from .interfaces import (
    AuthClient,
    BackendFactory,
    DeviceBackend,
    DeviceSession,
    FeatureHooks,
    HostUSB,
    HotplugCallback,
    NullFeatureHooks,
    Subscription,
)

from .usb_host import (
    SysfsUsbHost,
    PollingHotplugSubscription,
    read_sysfs_device,
)

from .hotplug_watcher import (
    HotplugWatcher,
    WatcherEventCallback,
)

__all__ = [
    # Collaborators
    'AuthClient',
    'BackendFactory',
    'DeviceBackend',
    'DeviceSession',
    'FeatureHooks',
    'HostUSB',
    'HotplugCallback',
    'NullFeatureHooks',
    'Subscription',
    # Host USB
    'SysfsUsbHost',
    'PollingHotplugSubscription',
    'read_sysfs_device',
    # Watcher
    'HotplugWatcher',
    'WatcherEventCallback',
]
