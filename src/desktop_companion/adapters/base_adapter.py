"""
Base Sensor Adapter Interface

All sensor adapters inherit from BaseSensorAdapter. An adapter serves one or
more catalog sensor ids and turns the current hardware state into
SensorReading objects the hub understands.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Tuple
from dataclasses import dataclass, field


@dataclass
class SensorReading:
    """A single hub entity value."""
    unique_id: str
    name: str
    state: Any
    sensor_type: str = "sensor"  # or "binary_sensor"
    device_class: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    state_class: Optional[str] = None
    icon: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def registration_payload(self) -> Dict[str, Any]:
        """Payload for the webhook ``register_sensor`` command."""
        return {
            "sensor_unique_id": self.unique_id,
            "sensor_name": self.name,
            "sensor_type": self.sensor_type,
            "sensor_state": self.state,
            "sensor_device_class": self.device_class,
            "sensor_unit_of_measurement": self.unit_of_measurement,
            "sensor_state_class": self.state_class,
            "sensor_icon": self.icon,
        }

    def update_payload(self) -> Dict[str, Any]:
        """Entry for the webhook ``update_sensor_states`` command."""
        return {
            "sensor_unique_id": self.unique_id,
            "sensor_state": self.state,
            "sensor_attributes": dict(self.attributes),
            "sensor_icon": self.icon,
        }


def indexed(base_id: str, base_name: str, index: int, count: int) -> Tuple[str, str]:
    """Suffix id and name with an index when several devices are present."""
    if count > 1:
        return f"{base_id}_{index}", f"{base_name} {index}"
    return base_id, base_name


def safe_name(raw: str) -> str:
    """Make a mount point or interface name usable inside a unique id."""
    cleaned = raw
    for ch in (" ", "/", "\\", ":"):
        cleaned = cleaned.replace(ch, "_")
    return cleaned.strip("_") or "root"


class BaseSensorAdapter(ABC):
    """
    Abstract base class for all sensor adapters.

    Example:
        class MyAdapter(BaseSensorAdapter):
            SENSOR_IDS = ("my_sensor",)

            def initialize(self) -> bool:
                return True

            def collect(self, sensor_id: str) -> List[SensorReading]:
                return [SensorReading("my_sensor", "My Sensor", 1)]
    """

    SENSOR_IDS: Tuple[str, ...] = ()

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._initialized = False
        self._error_count = 0
        self._max_errors = 10
        self._last_error: Optional[str] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def adapter_name(self) -> str:
        return self.__class__.__name__

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @abstractmethod
    def initialize(self) -> bool:
        """
        Prepare hardware access.

        Returns:
            True if the adapter can produce readings on this machine
        """

    @abstractmethod
    def collect(self, sensor_id: str) -> List[SensorReading]:
        """
        Read the current value(s) for one catalog sensor id.

        An empty list means the sensor has nothing to report on this machine
        (e.g. no battery). Failures raise.
        """

    def cleanup(self) -> None:
        """Release resources."""
        self._initialized = False

    def serves(self, sensor_id: str) -> bool:
        return sensor_id in self.SENSOR_IDS

    def read(self, sensor_id: str) -> List[SensorReading]:
        """Collect readings, tracking consecutive failures."""
        try:
            readings = self.collect(sensor_id)
        except Exception as e:
            self.record_error(str(e))
            raise
        self.reset_error_count()
        return readings

    def is_available(self) -> bool:
        return self._initialized and self._error_count < self._max_errors

    def record_error(self, error_message: str) -> None:
        self._error_count += 1
        self._last_error = error_message

    def reset_error_count(self) -> None:
        self._error_count = 0

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False
