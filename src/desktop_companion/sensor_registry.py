"""
Sensor Registry

Merges the fixed sensor catalog with the persisted enablement map.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .config_store import ConfigStore
from .const import DEFAULT_LANGUAGE, SENSOR_CATALOG, SENSOR_NAMES
from .exceptions import NotFoundError, StorageError, ValidationError

logger = logging.getLogger("desktop_companion.sensor_registry")


@dataclass(frozen=True)
class SensorDescriptor:
    """A sensor known to the companion."""
    id: str
    name: str
    enabled: bool = True
    updates_at_interval: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "updates_at_interval": self.updates_at_interval,
        }


def sensor_name(sensor_id: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Localized display label for a sensor id."""
    names = SENSOR_NAMES.get(language, {})
    return names.get(sensor_id) or SENSOR_NAMES[DEFAULT_LANGUAGE].get(sensor_id, sensor_id)


class SensorRegistry:
    """
    Catalog of sensors with persisted enabled flags.

    The set of sensors is fixed by the catalog; only enablement is owned
    here. Sensors missing from the persisted map default to enabled.
    """

    def __init__(self, store: ConfigStore, catalog: Optional[Dict[str, bool]] = None):
        self._store = store
        self._catalog = dict(catalog if catalog is not None else SENSOR_CATALOG)

    def _load_enabled(self) -> Dict[str, bool]:
        try:
            return self._store.get().enabled_sensors
        except StorageError as e:
            logger.warning(f"Sensor enablement unavailable, assuming defaults: {e}")
            return {}

    def _load_language(self) -> str:
        try:
            return self._store.get().settings.language
        except StorageError:
            return DEFAULT_LANGUAGE

    def list(self, language: Optional[str] = None) -> List[SensorDescriptor]:
        """Return every catalog sensor in catalog order."""
        enabled = self._load_enabled()
        language = language or self._load_language()
        return [
            SensorDescriptor(
                id=sensor_id,
                name=sensor_name(sensor_id, language),
                enabled=enabled.get(sensor_id, True),
                updates_at_interval=updates_at_interval,
            )
            for sensor_id, updates_at_interval in self._catalog.items()
        ]

    def get(self, sensor_id: str) -> SensorDescriptor:
        for descriptor in self.list():
            if descriptor.id == sensor_id:
                return descriptor
        raise NotFoundError(f"Unknown sensor: {sensor_id}")

    def toggle(self, sensor_id: str, enabled: bool) -> SensorDescriptor:
        """
        Enable or disable a sensor and persist the flag immediately.

        The change takes effect on the next scheduler tick.

        Raises:
            NotFoundError: sensor_id is not in the catalog
            ValidationError: enabled is not a bool
        """
        if sensor_id not in self._catalog:
            raise NotFoundError(f"Unknown sensor: {sensor_id}")
        if not isinstance(enabled, bool):
            raise ValidationError("Enabled flag must be true or false")

        self._store.set_sensor_enabled(sensor_id, enabled)
        logger.info(f"Sensor {sensor_id} {'enabled' if enabled else 'disabled'}")
        return self.get(sensor_id)

    def is_enabled(self, sensor_id: str) -> bool:
        if sensor_id not in self._catalog:
            raise NotFoundError(f"Unknown sensor: {sensor_id}")
        return self._load_enabled().get(sensor_id, True)

    def enabled_ids(self, updates_at_interval: Optional[bool] = None) -> List[str]:
        """
        Ids of enabled sensors, optionally filtered by periodic/static kind.
        """
        return [
            d.id for d in self.list()
            if d.enabled and (updates_at_interval is None or d.updates_at_interval == updates_at_interval)
        ]
