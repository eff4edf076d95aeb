"""Unit test fixtures for the connection core.

Every collaborator is a hardware-free double from
``tests.infrastructure.mocks``. Settings use a short probe interval so
lifecycle tests finish in milliseconds.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from devlink.core.connection import AutoConnector, ConnectionManager, ConnectionStore, InstanceGovernor
from devlink.core.settings import ConnectionSettings
from tests.infrastructure.mocks import (
    FakeSysfs,
    MockAuthClient,
    MockBackendFactory,
    MockUsbHost,
    RecordingHooks,
    StoreRecorder,
    make_device,
)


@pytest.fixture
def fast_settings(tmp_path: Path) -> ConnectionSettings:
    return ConnectionSettings(
        probe_interval=0.01,
        hotplug_interval=0.01,
        leader_lock_path=tmp_path / "leader.lock",
    )


@pytest.fixture
def device():
    return make_device()


@pytest.fixture
def host(device) -> MockUsbHost:
    host = MockUsbHost([device])
    host.request_result = device
    return host


@pytest.fixture
def backend_factory() -> MockBackendFactory:
    return MockBackendFactory()


@pytest.fixture
def auth_client() -> MockAuthClient:
    return MockAuthClient()


@pytest.fixture
def hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def store() -> ConnectionStore:
    return ConnectionStore()


@pytest.fixture
def recorder(store) -> StoreRecorder:
    return StoreRecorder(store)


@pytest.fixture
def manager(host, backend_factory, auth_client, store, hooks, fast_settings) -> ConnectionManager:
    return ConnectionManager(
        host,
        backend_factory,
        auth_client,
        store=store,
        hooks=hooks,
        settings=fast_settings,
        credential="secret",
    )


@pytest.fixture
def governor(fast_settings):
    governor = InstanceGovernor(fast_settings.leader_lock_path)
    yield governor
    governor.release()


@pytest.fixture
def auto_connector(manager, host, governor, hooks) -> AutoConnector:
    return AutoConnector(manager, host, governor, hooks=hooks)


@pytest.fixture
def sysfs(tmp_path: Path) -> FakeSysfs:
    tree = FakeSysfs(tmp_path)
    tree.add_root_hub()
    return tree
