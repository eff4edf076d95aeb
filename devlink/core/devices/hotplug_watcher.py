"""
Hotplug Watcher - Normalizes host USB attach/detach into WatcherEvents.

Exactly one host subscription is held at a time. Starting the watcher again
disposes the previous subscription before creating the new one, so handles
never leak across restarts.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from devlink.core.types import DeviceIdentity, WatcherEvent
from devlink.core.logging_utils import get_module_logger
from .interfaces import HostUSB, Subscription

logger = get_module_logger("HotplugWatcher")

WatcherEventCallback = Callable[[WatcherEvent], Awaitable[None]]


class HotplugWatcher:
    """
    Subscribes to host hot-plug notifications.

    Usage:
        watcher = HotplugWatcher(host)
        watcher.start(handle_event)
        # handle_event(WatcherEvent(identity=None)) on detach
        watcher.stop()
    """

    def __init__(self, host: HostUSB):
        self._host = host
        self._subscription: Optional[Subscription] = None
        self._on_event: Optional[WatcherEventCallback] = None

    @property
    def is_running(self) -> bool:
        return self._subscription is not None

    def start(self, on_event: WatcherEventCallback) -> None:
        if self._subscription is not None:
            logger.debug("Replacing existing hot-plug subscription")
            self._dispose()

        self._on_event = on_event
        self._subscription = self._host.subscribe_hotplug(self._handle_host_change)
        logger.info("Hot-plug watcher started")

    def stop(self) -> None:
        if self._subscription is None:
            return
        self._dispose()
        self._on_event = None
        logger.info("Hot-plug watcher stopped")

    def _dispose(self) -> None:
        subscription, self._subscription = self._subscription, None
        try:
            subscription.dispose()
        except Exception as e:
            logger.warning("Failed to dispose hot-plug subscription: %s", e)

    async def _handle_host_change(self, identity: Optional[DeviceIdentity]) -> None:
        callback = self._on_event
        if callback is None:
            return

        event = WatcherEvent(identity=identity)
        if event.removed:
            logger.info("Device removed")
        else:
            logger.info("Candidate device present: %s", identity)

        try:
            await callback(event)
        except Exception as e:
            logger.error("Error handling hot-plug event %s: %s", event, e)


__all__ = ["HotplugWatcher", "WatcherEventCallback"]
