"""
Pytest Configuration and Fixtures

Provides shared fixtures and test doubles for all tests.
"""

import threading
import pytest

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from desktop_companion.adapters.base_adapter import BaseSensorAdapter, SensorReading
from desktop_companion.adapters.collector import SensorCollector
from desktop_companion.config_store import ConfigStore, DeviceIdentity
from desktop_companion.const import SENSOR_CATALOG
from desktop_companion.dashboard import DashboardView
from desktop_companion.exceptions import RegistrationError
from desktop_companion.ha_client import RegistrationResponse
from desktop_companion.utils import get_default_config


TEST_URL = "http://hub.local:8123"
TEST_TOKEN = "abcdefghijklmnopqrstuvwxyz0123456789"


class FakeAdapter(BaseSensorAdapter):
    """Serves every catalog sensor with a constant reading."""

    SENSOR_IDS = tuple(SENSOR_CATALOG)

    def __init__(self, failing=()):
        super().__init__()
        self.failing = set(failing)
        self.reads = []

    def initialize(self) -> bool:
        self._initialized = True
        return True

    def collect(self, sensor_id):
        self.reads.append(sensor_id)
        if sensor_id in self.failing:
            raise RuntimeError(f"{sensor_id} unreadable")
        return [SensorReading(unique_id=sensor_id, name=sensor_id, state=1)]


class FakeClient:
    """Records hub calls made through the HaClient interface."""

    def __init__(self, hub, server_url, access_token, webhook_id):
        self.hub = hub
        self.server_url = server_url
        self.access_token = access_token
        self.webhook_id = webhook_id
        self.closed = False

    def check_integration_reachable(self):
        self.hub.calls.append("check")
        if self.hub.unreachable:
            raise RegistrationError("Cannot reach hub")

    def register_device(self, request):
        self.hub.calls.append("register_device")
        self.hub.registration_requests.append(request)
        return self.hub.registration_response

    def register_sensors(self, readings):
        readings = list(readings)
        self.hub.calls.append("register_sensors")
        if self.hub.sensor_registration_failures > 0:
            self.hub.sensor_registration_failures -= 1
            raise RegistrationError("Sensor registration rejected")
        self.hub.registered_sensors.extend(r.unique_id for r in readings)
        return len(readings)

    def update_sensors(self, readings, sensor_id=""):
        error = self.hub.push_errors.get(sensor_id)
        if error is not None:
            raise error
        with self.hub.lock:
            self.hub.pushes.append(sensor_id)

    def close(self):
        self.closed = True


class FakeHub:
    """Shared state behind every FakeClient a factory hands out."""

    def __init__(self):
        self.lock = threading.Lock()
        self.calls = []
        self.clients = []
        self.registration_requests = []
        self.registered_sensors = []
        self.pushes = []
        self.push_errors = {}
        self.unreachable = False
        self.sensor_registration_failures = 0
        self.registration_response = RegistrationResponse(success=True, webhook_id="hook-1")

    def factory(self, server_url, access_token, webhook_id):
        client = FakeClient(self, server_url, access_token, webhook_id)
        self.clients.append(client)
        return client


class FakeView(DashboardView):
    """Records the order of dashboard view operations."""

    def __init__(self, loads=True, storage_error=None):
        self.events = []
        self.storage = {}
        self.loads = loads
        self.storage_error = storage_error

    def navigate(self, url):
        self.events.append(("navigate", url))

    def wait_until_loaded(self, timeout):
        self.events.append(("wait", timeout))
        return self.loads

    def write_local_storage(self, origin, key, value):
        self.events.append(("storage", origin, key))
        if self.storage_error is not None:
            raise self.storage_error
        self.storage[(origin, key)] = value

    def show(self):
        self.events.append(("show",))

    def hide(self):
        self.events.append(("hide",))


@pytest.fixture
def default_config():
    """Provide default configuration."""
    return get_default_config()


@pytest.fixture
def store(tmp_path):
    """Empty store in a temporary directory."""
    return ConfigStore(tmp_path / "settings.yaml")


@pytest.fixture
def configured_store(store):
    """Store with server URL and token set but no registration."""
    store.save(server_url=TEST_URL, access_token=TEST_TOKEN, update_interval=60)
    return store


@pytest.fixture
def registered_store(configured_store):
    """Store for a registered device."""
    configured_store.save(identity=DeviceIdentity(device_id="device-1", webhook_id="hook-1", is_registered=True))
    return configured_store


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def collector(fake_adapter):
    """SensorCollector routing every catalog id to the fake adapter."""
    return SensorCollector(adapters=[fake_adapter])


@pytest.fixture
def hub():
    return FakeHub()
