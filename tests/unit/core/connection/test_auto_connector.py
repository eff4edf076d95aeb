"""Unit tests for AutoConnector."""

from dataclasses import dataclass

import pytest

from devlink.core.connection.auto_connector import AutoConnector
from devlink.core.types import ConnectionStatus, UsbConfiguration, UsbDevice, UsbInterface
from tests.infrastructure.mocks import OTHER_VENDOR_ID, make_device


@dataclass
class FakeGovernor:
    checked: bool = True
    is_leader: bool = True


@pytest.fixture
def fake_governor():
    return FakeGovernor()


@pytest.fixture
def connector(manager, host, fake_governor, hooks):
    return AutoConnector(manager, host, fake_governor, hooks=hooks)


class TestCriteria:

    @pytest.mark.parametrize(
        "in_flight, checked, leader, expected",
        [
            (False, True, True, True),
            (True, True, True, False),
            (False, False, True, False),
            (False, True, False, False),
            (False, False, False, False),
        ],
    )
    def test_can_auto_connect(self, connector, manager, fake_governor, in_flight, checked, leader, expected):
        manager._request_pending = in_flight
        fake_governor.checked = checked
        fake_governor.is_leader = leader

        assert connector.can_auto_connect() is expected

    @pytest.mark.asyncio
    async def test_criteria_failure_skips_enumeration(self, connector, host, fake_governor, backend_factory):
        fake_governor.is_leader = False

        assert await connector.auto_connect() is False
        assert host.list_calls == 0
        assert backend_factory.backends == []

    @pytest.mark.asyncio
    async def test_unchecked_governor_skips(self, connector, host, fake_governor):
        fake_governor.checked = False

        assert await connector.auto_connect() is False
        assert host.list_calls == 0


class TestDeviceChoice:

    @pytest.mark.asyncio
    async def test_protocol_device_is_connected(self, connector, manager, backend_factory, hooks):
        assert await connector.auto_connect() is True

        assert len(backend_factory.backends) == 1
        assert hooks.prepared == []

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_unprepared_device_is_redirected(self, connector, host, backend_factory, hooks):
        unprepared = make_device(interface_classes=(0x08,))
        host.devices = [unprepared]

        assert await connector.auto_connect() is False

        assert hooks.prepared == [unprepared]
        assert backend_factory.backends == []

    @pytest.mark.asyncio
    async def test_no_matching_vendor(self, connector, host, backend_factory, hooks):
        host.devices = [make_device(vendor_id=OTHER_VENDOR_ID)]

        assert await connector.auto_connect() is False

        assert backend_factory.backends == []
        assert hooks.prepared == []

    @pytest.mark.asyncio
    async def test_no_devices(self, connector, host):
        host.devices = []

        assert await connector.auto_connect() is False
        assert host.list_calls == 1

    @pytest.mark.asyncio
    async def test_prefers_device_with_protocol_interface(self, connector, manager, host, backend_factory, hooks):
        unprepared = make_device(bus_path="1-1", interface_classes=(0x08,))
        prepared = make_device(bus_path="1-3", interface_classes=(0x08, 0xFF))
        host.devices = [make_device(bus_path="1-4", vendor_id=OTHER_VENDOR_ID), unprepared, prepared]

        assert await connector.auto_connect() is True

        assert backend_factory.backends[0].device is prepared
        assert hooks.prepared == []

        await manager.shutdown()

    def test_protocol_interface_in_second_configuration(self, connector):
        base = make_device(interface_classes=(0x08,))
        device = UsbDevice(
            identity=base.identity,
            configurations=base.configurations + (
                UsbConfiguration(configuration_value=2, interfaces=(UsbInterface(0, 0xFF),)),
            ),
        )

        assert connector.has_protocol_interface(device) is True
        assert connector.has_protocol_interface(base) is False

    @pytest.mark.asyncio
    async def test_device_without_descriptors_is_connected_not_redirected(self, connector, manager, host, backend_factory, hooks):
        base = make_device()
        unknown = UsbDevice(identity=base.identity, product_name="Vista", configurations=None)
        host.devices = [unknown]

        assert connector.has_protocol_interface(unknown) is True
        assert await connector.auto_connect() is True

        assert backend_factory.backends[0].device is unknown
        assert hooks.prepared == []

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_connect_or_redirect_does_not_open_unprepared(self, connector, backend_factory, hooks):
        unprepared = make_device(interface_classes=())

        assert await connector.connect_or_redirect(unprepared) is False

        assert backend_factory.backends == []
        assert hooks.calls == ["navigate_to_preparation"]


class TestUserRequest:

    @pytest.mark.asyncio
    async def test_request_and_connect(self, connector, manager, backend_factory, recorder):
        assert await connector.request_and_connect() is True

        assert recorder.names[0] == "connecting"
        assert len(backend_factory.backends) == 1

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_request_declined(self, connector, host, recorder, backend_factory):
        host.request_result = None

        assert await connector.request_and_connect() is False

        assert recorder.names == ["connecting", "connection_failed"]
        assert backend_factory.backends == []

    @pytest.mark.asyncio
    async def test_request_error(self, connector, host, recorder):
        host.request_error = OSError("usb stack unavailable")

        assert await connector.request_and_connect() is False

        assert recorder.count("connection_failed") == 1

    @pytest.mark.asyncio
    async def test_request_unprepared_device_redirects(self, connector, host, hooks, backend_factory):
        unprepared = make_device(interface_classes=(0x08,))
        host.request_result = unprepared

        assert await connector.request_and_connect() is False

        assert hooks.prepared == [unprepared]
        assert backend_factory.backends == []

    @pytest.mark.asyncio
    async def test_request_ignores_leadership(self, connector, manager, fake_governor, backend_factory):
        fake_governor.is_leader = False

        assert await connector.request_and_connect() is True
        assert len(backend_factory.backends) == 1

        await manager.shutdown()


class TestStartup:

    @pytest.mark.asyncio
    async def test_startup_runs_once(self, connector, manager, store, host):
        assert await connector.startup() is True
        assert store.state.checked is True

        await manager.disconnect()
        assert await connector.startup() is False
        assert host.list_calls == 1

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_startup_with_active_session(self, connector, manager, device, store):
        await manager.connect(device)

        assert await connector.startup() is False
        assert store.state.checked is False

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_on_device_present_auto_connects(self, connector, manager, device):
        assert await connector.on_device_present(device.identity) is True
        assert manager.status in (ConnectionStatus.PROBING, ConnectionStatus.READY)

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_with_real_governor(self, auto_connector, governor, manager, backend_factory):
        assert await auto_connector.auto_connect() is False

        await governor.elect()

        assert await auto_connector.auto_connect() is True
        assert len(backend_factory.backends) == 1

        await manager.shutdown()
