"""
Desktop Companion Backend

Owns the persisted state, the registration protocol, the update scheduler
and the dashboard bootstrap, and exposes them to the UI layer as an
asynchronous command surface.

Every command runs on a single backend worker thread and returns a
``concurrent.futures.Future``; the UI never blocks its own event loop.

Usage:
    desktop-companion [--config path/to/companion.yaml] [--register]
"""

import sys
import time
import signal
import logging
import argparse
import threading
from pathlib import Path
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Any, Optional, List, Callable

from .adapters.collector import SensorCollector
from .config_store import ConfigStore, PersistedState
from .dashboard import DashboardBootstrap, DashboardView
from .exceptions import CompanionError, StorageError, ValidationError
from .ha_client import HaClient, get_public_ip
from .registration import DeviceRegistration
from .scheduler import UpdateScheduler
from .sensor_registry import SensorRegistry
from .utils import load_config, mask_token, normalize_server_url, setup_logging

logger = logging.getLogger("desktop_companion.companion")


class CompanionBackend:
    """
    Backend execution context.

    Orchestrates startup (load store, push static sensors, start the
    scheduler when registered) and implements every UI command.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[ConfigStore] = None,
        collector: Optional[SensorCollector] = None,
        view: Optional[DashboardView] = None,
        client_factory: Optional[Callable[[str, str, Optional[str]], HaClient]] = None,
    ):
        self.config = config or load_config()
        self.store = store or ConfigStore()
        self.collector = collector or SensorCollector(config=self.config)
        self.registry = SensorRegistry(self.store)
        self._client_factory = client_factory or self._default_client_factory

        registration_config = self.config.get("registration", {})
        scheduler_config = self.config.get("scheduler", {})
        dashboard_config = self.config.get("dashboard", {})

        self.registration = DeviceRegistration(
            self.store,
            self.registry,
            self.collector,
            self._client_factory,
            settle_delay=registration_config.get("settle_delay", 3.0),
        )
        self.scheduler = UpdateScheduler(
            self.store,
            self.registry,
            self.collector,
            self._client_factory,
            on_deregistered=self._on_deregistered,
            max_workers=scheduler_config.get("max_workers", 4),
        )
        self.dashboard = (
            DashboardBootstrap(view, load_timeout=dashboard_config.get("load_timeout", 10.0))
            if view is not None
            else None
        )

        self._show_settings_listeners: List[Callable[[], None]] = []
        self._deregistered_listeners: List[Callable[[], None]] = []
        self._started = False
        self._static_pushed = False

    def _default_client_factory(self, server_url: str, access_token: str, webhook_id: Optional[str]) -> HaClient:
        http_config = self.config.get("http", {})
        return HaClient(
            server_url,
            access_token,
            webhook_id,
            timeout=http_config.get("timeout", 30),
            verify_ssl=http_config.get("verify_ssl", False),
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _load_state(self) -> PersistedState:
        """Load the record, treating an unreadable one as a first run."""
        try:
            return self.store.get()
        except StorageError as e:
            logger.warning(f"Settings record unreadable, starting as first run: {e}")
            return PersistedState()

    def start(self) -> None:
        """Startup sequence: push static facts and start periodic updates if registered."""
        if self._started:
            return
        self._started = True

        state = self._load_state()
        self.registration.reset()
        logger.info(
            f"Starting Desktop Companion (server: {state.settings.server_url or 'not configured'}, "
            f"registered: {state.identity.is_registered})"
        )

        if state.identity.is_registered:
            if not self._static_pushed:
                self.push_static()
            self.scheduler.start(state.settings.update_interval)

    @property
    def static_pushed(self) -> bool:
        return self._static_pushed

    def push_static(self) -> None:
        """Push static facts; at most once per startup unless re-registered."""
        self.scheduler.push_static()
        self._static_pushed = True

    def stop(self) -> None:
        """Stop background activity and release resources."""
        self.scheduler.shutdown()
        self.collector.cleanup()
        self._started = False
        logger.info("Desktop Companion stopped")

    def _on_deregistered(self) -> None:
        self.registration.mark_deregistered(persist=False)
        for listener in list(self._deregistered_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"De-registration listener failed: {e}")

    def add_deregistered_listener(self, callback: Callable[[], None]) -> None:
        """Notify the UI that the device must be reconnected."""
        self._deregistered_listeners.append(callback)

    def add_show_settings_listener(self, callback: Callable[[], None]) -> None:
        self._show_settings_listeners.append(callback)

    def request_show_settings(self) -> None:
        """
        Tray "Settings" trigger: hide the dashboard and ask the UI to show
        its settings view.
        """
        if self.dashboard is not None:
            self.dashboard.hide()
        for listener in list(self._show_settings_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Show-settings listener failed: {e}")

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def get_settings(self) -> Dict[str, Any]:
        """Current settings for the UI; the token is only shown masked."""
        state = self._load_state()
        settings = state.settings
        return {
            "server_url": settings.server_url,
            "access_token": mask_token(settings.access_token),
            "has_access_token": bool(settings.access_token),
            "update_interval": settings.update_interval,
            "language": settings.language,
            "autostart": settings.autostart,
            "device_id": state.identity.device_id,
            "has_webhook": bool(state.identity.webhook_id),
            "is_registered": state.identity.is_registered,
            "registration_state": self.registration.state.value,
        }

    def save_settings(
        self,
        server_url: Optional[str] = None,
        access_token: Optional[str] = None,
        update_interval: Optional[int] = None,
        language: Optional[str] = None,
        autostart: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Save the provided settings fields.

        Changing the server URL or token of a registered device drops the
        registration (the device id is kept). Changing the interval
        reschedules the next push.
        """
        previous = self._load_state()

        # The UI only ever sees the masked token; echoing it back means "unchanged"
        if access_token is not None and previous.settings.access_token and (
            access_token == mask_token(previous.settings.access_token)
        ):
            access_token = None

        fields: Dict[str, Any] = {
            name: value
            for name, value in (
                ("server_url", server_url),
                ("access_token", access_token),
                ("update_interval", update_interval),
                ("language", language),
                ("autostart", autostart),
            )
            if value is not None
        }

        new_url = normalize_server_url(server_url) if isinstance(server_url, str) else previous.settings.server_url
        new_token = access_token.strip() if isinstance(access_token, str) else previous.settings.access_token
        credentials_changed = (
            new_url != previous.settings.server_url or new_token != previous.settings.access_token
        )

        if credentials_changed and previous.identity.is_registered:
            fields.update(is_registered=False, webhook_id=None)

        state = self.store.save(**fields)
        logger.info(f"Settings saved (token: {mask_token(state.settings.access_token) or 'none'})")

        if credentials_changed and previous.identity.is_registered:
            logger.info("Server URL or token changed; registration cleared")
            self.scheduler.stop()
            self.registration.reset()
        elif update_interval is not None and update_interval != previous.settings.update_interval:
            self.scheduler.reschedule(state.settings.update_interval)

        return self.get_settings()

    def get_sensor_list(self) -> List[Dict[str, Any]]:
        return [descriptor.to_dict() for descriptor in self.registry.list()]

    def toggle_sensor(self, sensor_id: str, enabled: bool) -> Dict[str, Any]:
        return self.registry.toggle(sensor_id, enabled).to_dict()

    def register_device(self) -> Dict[str, Any]:
        """
        Register with the hub, then push static facts and start periodic
        updates.
        """
        self.scheduler.stop()
        try:
            identity = self.registration.register_device()
        except CompanionError:
            # A failed refresh leaves an existing registration in place
            if self._load_state().identity.is_registered:
                self.scheduler.start()
            raise
        self.push_static()
        self.scheduler.start()
        return {
            "device_id": identity.device_id,
            "is_registered": identity.is_registered,
            "registration_state": self.registration.state.value,
        }

    def update_sensors_now(self) -> Dict[str, Any]:
        """Push all periodic sensors immediately."""
        state = self._load_state()
        if not state.identity.is_registered:
            raise ValidationError("Device not registered")
        result = self.scheduler.tick()
        return {"pushed": result.pushed, "failed": result.failed, "deregistered": result.deregistered}

    def load_dashboard(self) -> bool:
        """Bootstrap the embedded dashboard with an authenticated session."""
        if self.dashboard is None:
            raise ValidationError("No dashboard view attached")
        settings = self._load_state().settings
        if not settings.is_configured:
            raise ValidationError("Server URL and access token must be configured first")
        return self.dashboard.load(settings.server_url, settings.access_token)

    def hide_dashboard(self) -> None:
        if self.dashboard is not None:
            self.dashboard.hide()

    def get_current_language(self) -> str:
        return self._load_state().settings.language

    def get_my_public_ip(self) -> str:
        try:
            return get_public_ip()
        except Exception as e:
            raise CompanionError(f"Could not determine public IP: {e}") from e


class CommandSurface:
    """
    Asynchronous request/response facade over CompanionBackend.

    Commands are serialized on one backend worker thread. Each call returns
    a Future; errors arrive through ``Future.exception()``.
    """

    def __init__(self, backend: CompanionBackend):
        self.backend = backend
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="Backend")

    def _submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def get_settings(self) -> Future:
        return self._submit(self.backend.get_settings)

    def save_settings(self, **settings: Any) -> Future:
        return self._submit(self.backend.save_settings, **settings)

    def get_sensor_list(self) -> Future:
        return self._submit(self.backend.get_sensor_list)

    def toggle_sensor(self, sensor_id: str, enabled: bool) -> Future:
        return self._submit(self.backend.toggle_sensor, sensor_id, enabled)

    def register_device(self) -> Future:
        return self._submit(self.backend.register_device)

    def update_sensors_now(self) -> Future:
        return self._submit(self.backend.update_sensors_now)

    def load_dashboard(self) -> Future:
        return self._submit(self.backend.load_dashboard)

    def hide_dashboard(self) -> Future:
        return self._submit(self.backend.hide_dashboard)

    def get_current_language(self) -> Future:
        return self._submit(self.backend.get_current_language)

    def get_my_public_ip(self) -> Future:
        return self._submit(self.backend.get_my_public_ip)

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def _wait_for_shutdown(backend: CompanionBackend, stop_event: threading.Event) -> None:
    """Block until a shutdown signal, logging status once a minute."""
    try:
        while not stop_event.wait(60):
            logger.debug(
                f"Status: {backend.scheduler.push_count} pushes, "
                f"{backend.scheduler.failure_count} failures"
            )
    finally:
        backend.stop()


def main():
    """Main entry point: run the sync core headless until interrupted."""
    parser = argparse.ArgumentParser(
        description="Desktop Companion - mirror this machine into a Home Assistant hub"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to runtime configuration file",
        default=None
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        help="Directory holding the persisted settings record",
        default=None
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--register",
        action="store_true",
        help="(Re-)register this device with the configured hub before starting"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Push all sensors once and exit"
    )

    args = parser.parse_args()

    config = load_config(args.config)
    if args.verbose:
        config["debug"]["verbose"] = True
        config["debug"]["log_level"] = "DEBUG"
    setup_logging(config)

    store = ConfigStore(Path(args.config_dir) / "settings.yaml") if args.config_dir else ConfigStore()
    try:
        store.path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Cannot create settings directory {store.path.parent}: {e}", file=sys.stderr)
        sys.exit(1)

    backend = CompanionBackend(config=config, store=store)

    if args.register:
        try:
            result = backend.register_device()
            print(f"Registered device {result['device_id']}")
        except CompanionError as e:
            print(f"Registration failed: {e}", file=sys.stderr)
            backend.stop()
            sys.exit(2)

    if args.once:
        if not backend._load_state().identity.is_registered:
            print("Device is not registered; run with --register first", file=sys.stderr)
            backend.stop()
            sys.exit(2)
        if not backend.static_pushed:
            backend.push_static()
        result = backend.scheduler.tick()
        print(f"Pushed {len(result.pushed)} sensors, {len(result.failed)} failed")
        backend.stop()
        return

    stop_event = threading.Event()

    # Signal handlers for graceful shutdown
    def signal_handler(signum, frame):
        print("\nShutdown signal received...")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    delay = config.get("scheduler", {}).get("startup_delay", 0)
    if delay and not args.register:
        time.sleep(delay)

    backend.start()
    if not backend.scheduler.is_running:
        logger.warning("Device is not registered; run with --register to connect to the hub")

    print("Desktop Companion running. Press Ctrl+C to stop.")
    _wait_for_shutdown(backend, stop_event)


if __name__ == "__main__":
    main()
