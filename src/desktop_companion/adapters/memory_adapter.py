"""
Memory (RAM) Sensor Adapter

RAM usage percentage and used GB (periodic), total RAM (static).
"""

from typing import List

import psutil

from .base_adapter import BaseSensorAdapter, SensorReading

GB = 1024 ** 3


class MemoryAdapter(BaseSensorAdapter):
    """System memory adapter."""

    SENSOR_IDS = ("memory_usage", "memory_used", "memory_total")

    def initialize(self) -> bool:
        try:
            psutil.virtual_memory()
            self._initialized = True
            return True
        except Exception as e:
            self.record_error(str(e))
            return False

    def collect(self, sensor_id: str) -> List[SensorReading]:
        mem = psutil.virtual_memory()

        if sensor_id == "memory_usage":
            return [SensorReading(
                unique_id="memory_usage",
                name="Memory Usage",
                state=f"{mem.percent:.1f}",
                unit_of_measurement="%",
                state_class="measurement",
                icon="mdi:memory",
            )]

        if sensor_id == "memory_used":
            return [SensorReading(
                unique_id="memory_used",
                name="Memory Used",
                state=f"{(mem.total - mem.available) / GB:.2f}",
                device_class="data_size",
                unit_of_measurement="GB",
                state_class="measurement",
                icon="mdi:memory",
            )]

        if sensor_id == "memory_total":
            swap = psutil.swap_memory()
            return [SensorReading(
                unique_id="memory_total",
                name="Memory Total",
                state=f"{mem.total / GB:.1f}",
                device_class="data_size",
                unit_of_measurement="GB",
                icon="mdi:memory",
                attributes={"swap_total_gb": round(swap.total / GB, 1)},
            )]

        return []
