"""
CPU Sensor Adapter

CPU usage, frequency and temperature (periodic) and the CPU model (static).
"""

from typing import Dict, Any, Optional, List

import psutil

from .base_adapter import BaseSensorAdapter, SensorReading
from ..utils import get_cpu_model

# Labels that identify the package/core sensor among psutil temperature feeds
CPU_TEMP_LABELS = ("coretemp", "k10temp", "cpu_thermal", "cpu", "package", "core", "zenpower")


class CPUAdapter(BaseSensorAdapter):
    """
    Cross-platform CPU adapter.

    Serves:
        - cpu_usage: overall utilization percentage
        - cpu_frequency: current clock in MHz
        - cpu_temperature: package temperature where the OS exposes it
        - cpu_model: brand string with core counts (static)
    """

    SENSOR_IDS = ("cpu_usage", "cpu_frequency", "cpu_temperature", "cpu_model")

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self._cpu_count = psutil.cpu_count(logical=True)
        self._cpu_count_physical = psutil.cpu_count(logical=False)
        self._model: Optional[str] = None

    def initialize(self) -> bool:
        """Prime the utilization counter (the first call always returns 0)."""
        try:
            psutil.cpu_percent(interval=None)
            self._initialized = True
            return True
        except Exception as e:
            self.record_error(str(e))
            return False

    def collect(self, sensor_id: str) -> List[SensorReading]:
        if sensor_id == "cpu_usage":
            return [SensorReading(
                unique_id="cpu_usage",
                name="CPU Usage",
                state=f"{psutil.cpu_percent(interval=None):.1f}",
                unit_of_measurement="%",
                state_class="measurement",
                icon="mdi:cpu-64-bit",
            )]

        if sensor_id == "cpu_frequency":
            freq = psutil.cpu_freq()
            if not freq:
                return []
            return [SensorReading(
                unique_id="cpu_frequency",
                name="CPU Frequency",
                state=round(freq.current),
                device_class="frequency",
                unit_of_measurement="MHz",
                state_class="measurement",
                icon="mdi:speedometer",
            )]

        if sensor_id == "cpu_temperature":
            temp = self._get_cpu_temperature()
            if temp is None:
                return []
            return [SensorReading(
                unique_id="cpu_temperature",
                name="CPU Temperature",
                state=f"{temp:.1f}",
                device_class="temperature",
                unit_of_measurement="°C",
                state_class="measurement",
                icon="mdi:thermometer",
            )]

        if sensor_id == "cpu_model":
            if self._model is None:
                self._model = get_cpu_model()
            return [SensorReading(
                unique_id="cpu_model",
                name="CPU Model",
                state=self._model,
                icon="mdi:cpu-64-bit",
                attributes={
                    "core_count": self._cpu_count_physical,
                    "logical_core_count": self._cpu_count,
                },
            )]

        return []

    def _get_cpu_temperature(self) -> Optional[float]:
        """Get CPU temperature where psutil exposes it (Linux, some BSDs)."""
        if not hasattr(psutil, "sensors_temperatures"):
            return None
        try:
            temps = psutil.sensors_temperatures()
        except (OSError, AttributeError):
            return None
        if not temps:
            return None

        for name, entries in temps.items():
            if any(label in name.lower() for label in CPU_TEMP_LABELS) and entries:
                return entries[0].current

        for entries in temps.values():
            for entry in entries:
                label = (entry.label or "").lower()
                if any(key in label for key in CPU_TEMP_LABELS):
                    return entry.current
        return None
