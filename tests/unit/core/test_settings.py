"""Unit tests for ConnectionSettings."""

from pathlib import Path

import pytest

from devlink.core.config_manager import ConfigManager
from devlink.core.paths import LEADER_LOCK_FILE
from devlink.core.settings import (
    DEFAULT_MAX_PROBE_ATTEMPTS,
    DEFAULT_PROBE_INTERVAL,
    DEFAULT_VENDOR_ID,
    VENDOR_SPECIFIC_INTERFACE_CLASS,
    ConnectionSettings,
)


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(overrides_dir=tmp_path / "overrides")


class TestDefaults:

    def test_defaults(self):
        settings = ConnectionSettings()

        assert settings.vendor_id == DEFAULT_VENDOR_ID == 0x2CA3
        assert settings.interface_class == VENDOR_SPECIFIC_INTERFACE_CLASS == 0xFF
        assert settings.probe_interval == DEFAULT_PROBE_INTERVAL == 3.0
        assert settings.max_probe_attempts == DEFAULT_MAX_PROBE_ATTEMPTS == 3
        assert settings.reverse_port == 1
        assert settings.leader_lock_path == LEADER_LOCK_FILE
        assert settings.backend_factory is None

    def test_device_filters_track_vendor_only(self):
        assert ConnectionSettings(vendor_id=0x1234).device_filters == [{"vendor_id": 0x1234}]

    @pytest.mark.parametrize("kwargs", [
        {"probe_interval": 0},
        {"probe_interval": -1.0},
        {"max_probe_attempts": 0},
        {"hotplug_interval": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ConnectionSettings(**kwargs)


class TestFromConfig:

    def test_empty_config_uses_defaults(self, config_manager):
        assert ConnectionSettings.from_config({}, config_manager) == ConnectionSettings()

    def test_values_are_parsed(self, config_manager, tmp_path):
        config = {
            'vendor_id': '0x1234',
            'interface_class': '0xfe',
            'probe_interval': '0.5',
            'max_probe_attempts': '5',
            'reverse_port': '2',
            'hotplug_interval': '0.25',
            'leader_lock_path': str(tmp_path / "lead.lock"),
            'backend_factory': 'acme.usb:open_backend',
            'auth_client': 'acme.auth:Client',
            'credential_store': 'acme.auth:Keyring',
            'feature_hooks': '',
        }

        settings = ConnectionSettings.from_config(config, config_manager)

        assert settings.vendor_id == 0x1234
        assert settings.interface_class == 0xFE
        assert settings.probe_interval == 0.5
        assert settings.max_probe_attempts == 5
        assert settings.reverse_port == 2
        assert settings.hotplug_interval == 0.25
        assert settings.leader_lock_path == Path(tmp_path / "lead.lock")
        assert settings.backend_factory == 'acme.usb:open_backend'
        assert settings.auth_client == 'acme.auth:Client'
        assert settings.credential_store == 'acme.auth:Keyring'
        assert settings.feature_hooks is None

    def test_invalid_number_falls_back_to_default(self, config_manager):
        settings = ConnectionSettings.from_config({'max_probe_attempts': 'many'}, config_manager)

        assert settings.max_probe_attempts == DEFAULT_MAX_PROBE_ATTEMPTS

    def test_shipped_config_file_loads(self, project_root, config_manager):
        config = config_manager.read_config(project_root / "config.txt")

        settings = ConnectionSettings.from_config(config, config_manager)

        assert settings.vendor_id == 0x2CA3
        assert settings.interface_class == 0xFF
