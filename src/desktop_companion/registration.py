"""
Device registration protocol.

States:
    UNCONFIGURED -> PENDING -> REGISTERED
    PENDING -> FAILED on error; FAILED -> PENDING on retry;
    REGISTERED -> PENDING on manual re-registration.
"""

import time
import uuid
import logging
import threading
from enum import Enum
from typing import Callable, Optional

from . import __version__
from .adapters.collector import SensorCollector
from .config_store import ConfigStore, DeviceIdentity
from .exceptions import PushError, RegistrationError, StorageError, ValidationError
from .ha_client import HaClient, RegistrationRequest
from .sensor_registry import SensorRegistry
from .utils import get_system_info

logger = logging.getLogger("desktop_companion.registration")

ClientFactory = Callable[[str, str, Optional[str]], HaClient]


class RegistrationState(Enum):
    UNCONFIGURED = "unconfigured"
    PENDING = "pending"
    REGISTERED = "registered"
    FAILED = "failed"


class DeviceRegistration:
    """
    Turns (server URL, access token) into a registered device and webhook.

    Identity is persisted in a single save, and only after the hub accepted
    the device and its sensors; a failed attempt leaves nothing behind.
    """

    def __init__(
        self,
        store: ConfigStore,
        registry: SensorRegistry,
        collector: SensorCollector,
        client_factory: ClientFactory,
        settle_delay: float = 3.0,
    ):
        """
        Args:
            store: Persisted settings record
            registry: Sensor enablement, used to pick sensors to register
            collector: Reads initial sensor values for entity registration
            client_factory: Builds an HaClient from (url, token, webhook_id)
            settle_delay: Seconds to let the hub set up its platforms before
                sensors are registered through the new webhook
        """
        self._store = store
        self._registry = registry
        self._collector = collector
        self._client_factory = client_factory
        self.settle_delay = settle_delay
        self._lock = threading.Lock()
        self._state = self._initial_state()
        self.last_error: Optional[str] = None
        # Minted id reused by every retry until a registration persists it
        self._pending_device_id: Optional[str] = None

    def _initial_state(self) -> RegistrationState:
        try:
            persisted = self._store.get()
        except StorageError:
            return RegistrationState.UNCONFIGURED
        if persisted.identity.is_registered:
            return RegistrationState.REGISTERED
        if not persisted.settings.is_configured:
            return RegistrationState.UNCONFIGURED
        if persisted.identity.device_id:
            # Known device that lost its registration
            return RegistrationState.FAILED
        return RegistrationState.UNCONFIGURED

    @property
    def state(self) -> RegistrationState:
        return self._state

    def reset(self) -> None:
        """Re-derive the state after settings changed outside this object."""
        self._state = self._initial_state()

    def register_device(self) -> DeviceIdentity:
        """
        Register (or refresh the registration of) this device.

        Returns:
            The persisted DeviceIdentity

        Raises:
            ValidationError: server URL or access token missing
            RegistrationError: the hub rejected the request or was unreachable
            StorageError: the new identity could not be persisted
        """
        with self._lock:
            persisted = self._store.get()
            settings = persisted.settings

            if not settings.server_url:
                logger.error("Registration: server URL is empty")
                self._state = RegistrationState.UNCONFIGURED
                raise ValidationError("Server URL is not configured")
            if not settings.access_token:
                logger.error("Registration: access token is empty")
                self._state = RegistrationState.UNCONFIGURED
                raise ValidationError("Access token is not configured")

            self._state = RegistrationState.PENDING
            refresh = bool(persisted.identity.device_id)
            device_id = persisted.identity.device_id or self._pending_device_id or str(uuid.uuid4())
            if not persisted.identity.device_id:
                self._pending_device_id = device_id
            logger.info(
                f"{'Refreshing registration' if refresh else 'Registering device'} "
                f"{device_id} with {settings.server_url}"
            )

            try:
                webhook_id = self._register_with_hub(settings.server_url, settings.access_token, device_id)
                identity = DeviceIdentity(device_id=device_id, webhook_id=webhook_id, is_registered=True)
                self._store.save(identity=identity)
            except (RegistrationError, StorageError) as e:
                self._fail(str(e))
                raise

            self._state = RegistrationState.REGISTERED
            self._pending_device_id = None
            self.last_error = None
            logger.info(f"Device {device_id} registered")
            return identity

    def _register_with_hub(self, server_url: str, access_token: str, device_id: str) -> str:
        info = get_system_info()
        request = RegistrationRequest(
            device_id=device_id,
            device_name=info.hostname,
            manufacturer=info.motherboard_manufacturer,
            model=info.motherboard_model,
            os_name=info.os_name,
            os_version=info.os_version,
            app_version=__version__,
        )

        client = self._client_factory(server_url, access_token, None)
        try:
            client.check_integration_reachable()
            response = client.register_device(request)

            if not response.success:
                raise RegistrationError(
                    f"Registration rejected: {response.error or 'Unknown error'}"
                )
            if not response.webhook_id:
                raise RegistrationError("No webhook_id in registration response")

            client.webhook_id = response.webhook_id

            if self.settle_delay > 0:
                logger.info(f"Waiting {self.settle_delay}s for hub platform setup")
                time.sleep(self.settle_delay)

            readings = self._collector.read_many(self._registry.enabled_ids())
            try:
                count = client.register_sensors(readings)
            except PushError as e:
                raise RegistrationError(f"Sensor registration failed: {e}") from e
            logger.info(f"Registered {count} sensor entities")

            return response.webhook_id
        finally:
            client.close()

    def _fail(self, message: str) -> None:
        self._state = RegistrationState.FAILED
        self.last_error = message
        logger.error(f"Registration failed: {message}")

    def mark_deregistered(self, persist: bool = True) -> None:
        """
        Record that the hub no longer knows this device.

        The device id is kept so a later registration reuses it.

        Args:
            persist: Also clear the webhook and registration flag on disk
                (skip when the caller already did)
        """
        if persist:
            try:
                self._store.save(is_registered=False, webhook_id=None)
            except StorageError as e:
                logger.error(f"Could not persist de-registration: {e}")
        self._state = RegistrationState.FAILED
        self.last_error = "The hub no longer recognizes this device; please reconnect"
        logger.warning("Device de-registered by the hub; re-registration required")
