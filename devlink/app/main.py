import argparse
import asyncio
import importlib
import inspect
import signal
from pathlib import Path
from typing import Any, Optional

from devlink.core.config_manager import get_config_manager
from devlink.core.connection import (
    AutoConnector,
    ConnectionManager,
    ConnectionStore,
    InstanceGovernor,
    StoreEvent,
)
from devlink.core.devices import NullFeatureHooks, SysfsUsbHost
from devlink.core.logging_config import configure_logging
from devlink.core.logging_utils import get_module_logger
from devlink.core.paths import CONFIG_PATH, LOG_FILE, ensure_directories
from devlink.core.settings import ConnectionSettings


logger = get_module_logger("DeviceLink")

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments; logging defaults come from the config file."""
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", type=Path, default=CONFIG_PATH)
    known, _ = pre_parser.parse_known_args(argv)

    cm = get_config_manager()
    config = cm.read_config(known.config)

    parser = argparse.ArgumentParser(
        prog="devlink",
        description="Keep one USB device connected, authenticated and ready.",
        parents=[pre_parser],
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=cm.get_str(config, "log_level", default="info"),
        help="root log level (config: log_level)",
    )
    parser.add_argument(
        "--console",
        dest="console_output",
        action=argparse.BooleanOptionalAction,
        default=cm.get_bool(config, "console_output", default=True),
        help="mirror the log file to stdout (config: console_output)",
    )
    return parser.parse_args(argv)


def load_object(path: str, *, instantiate: bool = False) -> Any:
    """Resolve ``package.module:attribute``; optionally instantiate classes."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {path!r}")

    target: Any = importlib.import_module(module_name)
    for part in attribute.split("."):
        target = getattr(target, part)

    if instantiate and inspect.isclass(target):
        target = target()
    return target


def _log_store_event(event: StoreEvent) -> None:
    if event.name in ("metric", "status"):
        logger.debug("store: %s = %s", event.name, event.value)
    else:
        logger.info("store: %s%s", event.name, "" if event.value is None else f" = {event.value}")


async def run_coordinator(
    settings: ConnectionSettings,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Wire the connection core together and run until ``stop_event`` is set."""
    if not settings.backend_factory or not settings.auth_client:
        raise SystemExit("config must set backend_factory and auth_client")

    backend_factory = load_object(settings.backend_factory)
    auth_client = load_object(settings.auth_client, instantiate=True)
    hooks = (
        load_object(settings.feature_hooks, instantiate=True)
        if settings.feature_hooks else NullFeatureHooks()
    )
    credential = (
        load_object(settings.credential_store, instantiate=True)
        if settings.credential_store else None
    )

    host = SysfsUsbHost(
        hotplug_interval=settings.hotplug_interval,
        watch_filters=settings.device_filters,
    )
    store = ConnectionStore()
    store.add_observer(_log_store_event)

    governor = InstanceGovernor(settings.leader_lock_path)
    manager = ConnectionManager(
        host,
        backend_factory,
        auth_client,
        store=store,
        hooks=hooks,
        settings=settings,
        credential=credential,
    )
    auto_connector = AutoConnector(manager, host, governor, hooks=hooks)

    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    try:
        await governor.elect()
        await manager.start(on_device_present=auto_connector.on_device_present)
        await auto_connector.startup()
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        await manager.shutdown()
        governor.release()
        for sig in installed:
            loop.remove_signal_handler(sig)


async def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)

    ensure_directories()

    configure_logging(
        args.log_level,
        force=True,
        console=args.console_output,
        log_file=LOG_FILE,
    )

    config = await get_config_manager().read_config_async(args.config)
    settings = ConnectionSettings.from_config(config)

    logger.info("=" * 60)
    logger.info("devlink starting")
    logger.info("Config: %s", args.config)
    logger.info("Vendor filter: 0x%04x, protocol interface class: 0x%02x",
                settings.vendor_id, settings.interface_class)
    logger.info("Readiness: %d probes every %.1fs", settings.max_probe_attempts, settings.probe_interval)
    logger.info("=" * 60)

    try:
        await run_coordinator(settings)
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("devlink stopped")
