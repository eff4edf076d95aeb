"""Policy constants for the connection lifecycle, loadable from config."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .config_manager import ConfigManager, get_config_manager
from .paths import LEADER_LOCK_FILE

DEFAULT_VENDOR_ID = 0x2CA3
VENDOR_SPECIFIC_INTERFACE_CLASS = 0xFF
DEFAULT_PROBE_INTERVAL = 3.0
DEFAULT_MAX_PROBE_ATTEMPTS = 3
DEFAULT_REVERSE_PORT = 1
DEFAULT_HOTPLUG_INTERVAL = 1.0


@dataclass(frozen=True)
class ConnectionSettings:
    """Tunable policy values.

    None of these are protocol requirements: the vendor filter, interface
    class and probe cadence reflect what the supported devices need today.
    """
    vendor_id: int = DEFAULT_VENDOR_ID
    interface_class: int = VENDOR_SPECIFIC_INTERFACE_CLASS
    probe_interval: float = DEFAULT_PROBE_INTERVAL
    max_probe_attempts: int = DEFAULT_MAX_PROBE_ATTEMPTS
    reverse_port: int = DEFAULT_REVERSE_PORT
    hotplug_interval: float = DEFAULT_HOTPLUG_INTERVAL
    leader_lock_path: Path = field(default=LEADER_LOCK_FILE)
    backend_factory: Optional[str] = None
    auth_client: Optional[str] = None
    credential_store: Optional[str] = None
    feature_hooks: Optional[str] = None

    def __post_init__(self) -> None:
        if self.probe_interval <= 0:
            raise ValueError("probe_interval must be positive")
        if self.max_probe_attempts < 1:
            raise ValueError("max_probe_attempts must be at least 1")
        if self.hotplug_interval <= 0:
            raise ValueError("hotplug_interval must be positive")

    @property
    def device_filters(self) -> list[dict[str, int]]:
        return [{"vendor_id": self.vendor_id}]

    @classmethod
    def from_config(
        cls,
        config: Dict[str, str],
        config_manager: Optional[ConfigManager] = None,
    ) -> "ConnectionSettings":
        cm = config_manager or get_config_manager()
        lock_path = cm.get_str(config, "leader_lock_path", default="")
        return cls(
            vendor_id=cm.get_int(config, "vendor_id", default=DEFAULT_VENDOR_ID),
            interface_class=cm.get_int(config, "interface_class", default=VENDOR_SPECIFIC_INTERFACE_CLASS),
            probe_interval=cm.get_float(config, "probe_interval", default=DEFAULT_PROBE_INTERVAL),
            max_probe_attempts=cm.get_int(config, "max_probe_attempts", default=DEFAULT_MAX_PROBE_ATTEMPTS),
            reverse_port=cm.get_int(config, "reverse_port", default=DEFAULT_REVERSE_PORT),
            hotplug_interval=cm.get_float(config, "hotplug_interval", default=DEFAULT_HOTPLUG_INTERVAL),
            leader_lock_path=Path(lock_path).expanduser() if lock_path else LEADER_LOCK_FILE,
            backend_factory=cm.get_str(config, "backend_factory") or None,
            auth_client=cm.get_str(config, "auth_client") or None,
            credential_store=cm.get_str(config, "credential_store") or None,
            feature_hooks=cm.get_str(config, "feature_hooks") or None,
        )


__all__ = [
    "ConnectionSettings",
    "DEFAULT_VENDOR_ID",
    "VENDOR_SPECIFIC_INTERFACE_CLASS",
    "DEFAULT_PROBE_INTERVAL",
    "DEFAULT_MAX_PROBE_ATTEMPTS",
    "DEFAULT_REVERSE_PORT",
    "DEFAULT_HOTPLUG_INTERVAL",
]
