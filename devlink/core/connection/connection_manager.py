"""
Connection Manager - Owns the single device connection and its lifecycle.

State transitions:
- IDLE/FAILED/DISCONNECTED -> CONNECTING: connect() with a device
- CONNECTING -> PROBING: backend opened and authenticated
- CONNECTING -> FAILED: backend open or handshake raised
- CONNECTING -> IDLE: the connecting task was cancelled mid-handshake
- PROBING -> READY: readiness poller reported a responsive device
- PROBING -> FAILED: preparing the ready session raised
- any -> DISCONNECTED/IDLE: device removed, disconnect() or shutdown()

Asynchronous continuations (poller ticks, hot-plug callbacks and connect()'s
own resumption after the handshake) can interleave. Instead of locks, every
continuation carries the session or attempt number it belongs to and checks
that it is still current before touching state.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional, Set

from devlink.core.asyncio_utils import create_logged_task
from devlink.core.devices.hotplug_watcher import HotplugWatcher
from devlink.core.devices.interfaces import (
    AuthClient,
    BackendFactory,
    DeviceBackend,
    DeviceSession,
    FeatureHooks,
    HostUSB,
    NullFeatureHooks,
)
from devlink.core.errors import HandshakeFailed, InvalidTransition, TeardownFailed
from devlink.core.logging_utils import get_module_logger
from devlink.core.settings import ConnectionSettings
from devlink.core.types import (
    CONNECTABLE_STATES,
    ConnectionSession,
    ConnectionStatus,
    DeviceIdentity,
    ReadySession,
    UsbDevice,
    WatcherEvent,
)
from .readiness_poller import ReadinessPoller
from .store import ConnectionStore

logger = get_module_logger("ConnectionManager")

DevicePresentCallback = Callable[[DeviceIdentity], Awaitable[Any]]

# Allowed targets per state; DISCONNECTED and IDLE are reachable from anywhere.
STATE_TRANSITIONS: Dict[ConnectionStatus, FrozenSet[ConnectionStatus]] = {
    ConnectionStatus.IDLE: frozenset({ConnectionStatus.CONNECTING}),
    ConnectionStatus.FAILED: frozenset({ConnectionStatus.CONNECTING}),
    ConnectionStatus.DISCONNECTED: frozenset({ConnectionStatus.CONNECTING}),
    ConnectionStatus.CONNECTING: frozenset({ConnectionStatus.PROBING, ConnectionStatus.FAILED}),
    ConnectionStatus.PROBING: frozenset({ConnectionStatus.READY, ConnectionStatus.FAILED}),
    ConnectionStatus.READY: frozenset(),
}
ALWAYS_REACHABLE = frozenset({ConnectionStatus.DISCONNECTED, ConnectionStatus.IDLE})


class ConnectionManager:
    """
    Single source of truth for the device connection.

    Usage:
        manager = ConnectionManager(host, backend_factory, auth_client, store=store)
        await manager.start(on_device_present=auto_connector.on_device_present)

        device = await manager.request_device()
        if await manager.connect(device):
            ...  # probing; store publishes "connected" once ready

        await manager.shutdown()
    """

    def __init__(
        self,
        host: HostUSB,
        backend_factory: BackendFactory,
        auth_client: AuthClient,
        *,
        store: Optional[ConnectionStore] = None,
        hooks: Optional[FeatureHooks] = None,
        settings: Optional[ConnectionSettings] = None,
        credential: Any = None,
    ):
        self._host = host
        self._backend_factory = backend_factory
        self._auth_client = auth_client
        self._store = store or ConnectionStore()
        self._hooks = hooks or NullFeatureHooks()
        self._settings = settings or ConnectionSettings()
        self._credential = credential

        self._status = ConnectionStatus.IDLE
        self._session: Optional[ConnectionSession] = None
        self._backend: Optional[DeviceBackend] = None
        self._poller: Optional[ReadinessPoller] = None
        self._ready_session: Optional[ReadySession] = None

        # Bumped on every connect attempt and every release, so a handshake
        # that resumes after a teardown can tell it is stale.
        self._attempt = 0
        self._request_pending = False

        self._watcher = HotplugWatcher(host)
        self._on_device_present: Optional[DevicePresentCallback] = None
        self._background_tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def store(self) -> ConnectionStore:
        return self._store

    @property
    def settings(self) -> ConnectionSettings:
        return self._settings

    @property
    def session_active(self) -> bool:
        return self._session is not None

    @property
    def connect_in_flight(self) -> bool:
        """A device request or handshake is currently suspended."""
        return self._request_pending or self._status is ConnectionStatus.CONNECTING

    @property
    def ready_session(self) -> Optional[ReadySession]:
        return self._ready_session

    @property
    def watcher(self) -> HotplugWatcher:
        return self._watcher

    def is_current_session(self, session: Optional[ConnectionSession]) -> bool:
        return session is not None and session is self._session

    def _transition(self, new_status: ConnectionStatus) -> None:
        old_status = self._status
        if new_status is old_status:
            return
        if new_status not in ALWAYS_REACHABLE and new_status not in STATE_TRANSITIONS[old_status]:
            raise InvalidTransition(f"{old_status.value} -> {new_status.value}")

        self._status = new_status
        logger.info("Connection %s -> %s", old_status.value, new_status.value)
        self._store.set_status(new_status)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, on_device_present: Optional[DevicePresentCallback] = None) -> None:
        """Begin watching for hot-plug events."""
        self._on_device_present = on_device_present
        self._store.context_reset()
        self._watcher.start(self._handle_watcher_event)
        logger.info("Connection manager started")

    async def shutdown(self) -> None:
        """Tear everything down. Never raises; safe to call repeatedly."""
        self._store.context_reset()
        self._watcher.stop()
        self._on_device_present = None
        await self._release_session()
        self._transition(ConnectionStatus.IDLE)
        logger.info("Connection manager stopped")

    async def _handle_watcher_event(self, event: WatcherEvent) -> None:
        if event.removed:
            await self.handle_device_removed()
        elif self._on_device_present is not None:
            await self._on_device_present(event.identity)

    # =========================================================================
    # Connecting
    # =========================================================================

    async def request_device(self) -> UsbDevice:
        """Ask the host for a device matching the vendor filter.

        Raises DeviceUnavailable when nothing matches.
        """
        self._store.connecting()
        self._request_pending = True
        try:
            return await self._host.request_device(self._settings.device_filters)
        finally:
            self._request_pending = False

    async def _handshake(self, backend: DeviceBackend) -> DeviceSession:
        try:
            stream = await backend.connect()
            return await self._auth_client.authenticate(stream, self._credential)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise HandshakeFailed(f"{type(e).__name__}: {e}") from e

    async def connect(self, device: Optional[UsbDevice]) -> bool:
        """Open, authenticate and start probing ``device``.

        Returns True once the session exists and probing has started. A
        call while another attempt or session is active does nothing.
        """
        if device is None:
            self._reset_feature_caches()
            return False

        if self._status not in CONNECTABLE_STATES:
            logger.debug(
                "Ignoring connect to %s while %s",
                device.identity, self._status.value,
            )
            return False

        self._attempt += 1
        attempt = self._attempt
        self._transition(ConnectionStatus.CONNECTING)
        logger.info("Connecting to %s", device.identity)

        backend: Optional[DeviceBackend] = None
        try:
            backend = self._backend_factory(device)
            self._backend = backend
            client = await self._handshake(backend)
        except asyncio.CancelledError:
            if attempt == self._attempt:
                logger.warning("Connection to %s cancelled during the handshake", device.identity)
                self._attempt += 1
                self._backend = None
                self._transition(ConnectionStatus.IDLE)
                if backend is not None:
                    await self._close_backend(backend)
            raise
        except Exception as e:
            if attempt != self._attempt:
                # Teardown already closed the backend and reset the state
                return False
            logger.error("Failed connecting to device %s: %s", device.identity, e)
            self._backend = None
            if backend is not None:
                await self._close_backend(backend)
            self._transition(ConnectionStatus.FAILED)
            self._store.connection_failed()
            return False

        if attempt != self._attempt:
            logger.info("Connection to %s was torn down during the handshake", device.identity)
            return False

        session = ConnectionSession(identity=device.identity, backend=backend, client=client)
        self._session = session
        self._store.set_claimed(True)
        self._transition(ConnectionStatus.PROBING)

        self._poller = ReadinessPoller(
            session,
            on_ready=self.on_readiness_achieved,
            on_metric=self._store.set_metric,
            is_current=self.is_current_session,
            interval=self._settings.probe_interval,
            max_attempts=self._settings.max_probe_attempts,
        )
        await self._poller.start()
        return True

    async def on_readiness_achieved(self, session: ConnectionSession, metric: Optional[float]) -> bool:
        """Publish the session as ready. Only the first call per session counts."""
        if not self.is_current_session(session) or not session.mark_ready():
            return False

        logger.info("Device %s is ready (metric=%s)", session.identity, metric)
        client = session.client
        try:
            await client.establish_reverse_channel(self._settings.reverse_port)
            info = await client.get_product_info()
        except Exception as e:
            if not self.is_current_session(session):
                return False
            logger.error("Failed preparing session for %s: %s", session.identity, e)
            await self._release_session()
            self._store.set_claimed(False)
            self._transition(ConnectionStatus.FAILED)
            self._store.connection_failed()
            return False

        if not self.is_current_session(session):
            logger.debug("Session %d went away while fetching product info", session.session_id)
            return False

        ready = ReadySession(
            session_id=session.session_id,
            identity=session.identity,
            client=client,
            product_info=dict(info or {}),
        )
        self._ready_session = ready

        self._store.set_product_info(ready.product_info)
        self._reset_feature_caches()
        self._transition(ConnectionStatus.READY)
        self._store.connected()
        self._store.set_transport_ready(True)

        create_logged_task(
            self._hooks.check_binaries(ready),
            logger=logger,
            name="check-binaries",
            pending=self._background_tasks,
        )
        return True

    # =========================================================================
    # Tearing down
    # =========================================================================

    async def handle_device_removed(self) -> None:
        """The watched device went away: drop the session and all device state."""
        await self._release_session()
        self._transition(ConnectionStatus.DISCONNECTED)
        self._store.reset()
        self._transition(ConnectionStatus.IDLE)

    async def disconnect(self) -> None:
        """Explicitly give up the device while it stays attached."""
        await self._release_session()
        self._store.set_claimed(False)
        self._store.set_transport_ready(False)
        self._transition(ConnectionStatus.DISCONNECTED)
        self._transition(ConnectionStatus.IDLE)

    async def _release_session(self) -> None:
        # Handles are cleared before the first await so any continuation
        # that resumes during teardown already sees itself as stale.
        self._attempt += 1
        poller, self._poller = self._poller, None
        backend, self._backend = self._backend, None
        session, self._session = self._session, None
        self._ready_session = None

        for task in list(self._background_tasks):
            task.cancel()

        if poller is not None:
            await poller.stop()
        if backend is not None:
            await self._close_backend(backend)
        if session is not None:
            logger.info("Released session %d for %s", session.session_id, session.identity)

    async def _teardown(self, backend: DeviceBackend) -> None:
        try:
            await backend.close()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TeardownFailed(f"{type(e).__name__}: {e}") from e

    async def _close_backend(self, backend: DeviceBackend) -> None:
        try:
            await self._teardown(backend)
        except TeardownFailed as e:
            logger.warning("Failed closing device: %s", e)

    def _reset_feature_caches(self) -> None:
        for reset in (self._hooks.reset_packages, self._hooks.reset_healthchecks):
            try:
                reset()
            except Exception as e:
                logger.error("Feature cache reset failed: %s", e)


__all__ = [
    "ConnectionManager",
    "DevicePresentCallback",
    "STATE_TRANSITIONS",
    "ALWAYS_REACHABLE",
]
