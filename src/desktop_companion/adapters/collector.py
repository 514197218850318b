"""
Sensor Collector

Routes a catalog sensor id to the adapter that can read it.
"""

import logging
from typing import Dict, Any, Optional, List, Iterable

from .base_adapter import BaseSensorAdapter, SensorReading
from .battery_adapter import BatteryAdapter
from .cpu_adapter import CPUAdapter
from .disk_adapter import DiskAdapter
from .memory_adapter import MemoryAdapter
from .network_adapter import NetworkAdapter
from .nvidia_adapter import NvidiaGPUAdapter
from .system_adapter import SystemInfoAdapter
from ..exceptions import NotFoundError

logger = logging.getLogger("desktop_companion.collector")

DEFAULT_ADAPTERS = (
    CPUAdapter,
    MemoryAdapter,
    DiskAdapter,
    NvidiaGPUAdapter,
    NetworkAdapter,
    BatteryAdapter,
    SystemInfoAdapter,
)


class SensorCollector:
    """
    The "read current value of sensor X" capability.

    Adapters that fail to initialize are kept out of the routing table;
    their sensors simply produce no readings.
    """

    def __init__(
        self,
        adapters: Optional[Iterable[BaseSensorAdapter]] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.config = config or {}
        if adapters is None:
            adapters = [cls(self.config) for cls in DEFAULT_ADAPTERS]

        self._adapters: List[BaseSensorAdapter] = []
        self._routes: Dict[str, BaseSensorAdapter] = {}
        for adapter in adapters:
            if adapter.is_initialized or adapter.initialize():
                self._adapters.append(adapter)
                for sensor_id in adapter.SENSOR_IDS:
                    self._routes.setdefault(sensor_id, adapter)
                logger.debug(f"{adapter.adapter_name} initialized")
            else:
                logger.debug(f"{adapter.adapter_name} not available on this machine")

    @property
    def adapters(self) -> List[BaseSensorAdapter]:
        return list(self._adapters)

    def supports(self, sensor_id: str) -> bool:
        return sensor_id in self._routes

    def read(self, sensor_id: str) -> List[SensorReading]:
        """
        Read the current value(s) of one sensor.

        Returns:
            Readings (possibly empty when the hardware is absent)

        Raises:
            NotFoundError: no adapter serves this id
        """
        adapter = self._routes.get(sensor_id)
        if adapter is None:
            raise NotFoundError(f"No adapter available for sensor: {sensor_id}")
        return adapter.read(sensor_id)

    def read_many(self, sensor_ids: Iterable[str]) -> List[SensorReading]:
        """Read several sensors, skipping any that fail."""
        readings = []
        for sensor_id in sensor_ids:
            if sensor_id not in self._routes:
                continue
            try:
                readings.extend(self.read(sensor_id))
            except Exception as e:
                logger.warning(f"Failed to read {sensor_id}: {e}")
        return readings

    def cleanup(self) -> None:
        for adapter in self._adapters:
            try:
                adapter.cleanup()
            except Exception as e:
                logger.debug(f"Cleanup of {adapter.adapter_name} failed: {e}")
