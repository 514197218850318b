"""
Disk/Storage Sensor Adapter

One usage-percentage reading per mounted partition.
"""

import sys
from typing import Dict, Any, Optional, List

import psutil

from .base_adapter import BaseSensorAdapter, SensorReading, safe_name

GB = 1024 ** 3

# Pseudo/virtual filesystems that are never interesting to the hub
IGNORED_FSTYPES = ("squashfs", "tmpfs", "devtmpfs", "overlay", "iso9660")


class DiskAdapter(BaseSensorAdapter):
    """
    Disk usage adapter.

    Partitions are re-enumerated on every read so removable drives appear
    and disappear with the hardware.
    """

    SENSOR_IDS = ("disk_usage",)

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self._partitions: List[Any] = []

    def initialize(self) -> bool:
        try:
            self._partitions = self._list_partitions()
            self._initialized = True
            return True
        except Exception as e:
            self.record_error(str(e))
            return False

    def _list_partitions(self) -> List[Any]:
        return [
            p for p in psutil.disk_partitions(all=False)
            if p.fstype.lower() not in IGNORED_FSTYPES
        ]

    def collect(self, sensor_id: str) -> List[SensorReading]:
        if sensor_id != "disk_usage":
            return []

        self._partitions = self._list_partitions()
        readings = []
        for partition in self._partitions:
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (PermissionError, OSError):
                continue

            if sys.platform == "win32":
                # C:\ -> C
                part_name = partition.device[:1].upper() or safe_name(partition.mountpoint)
            else:
                part_name = safe_name(partition.mountpoint)

            readings.append(SensorReading(
                unique_id=f"disk_usage_{part_name}",
                name=f"Disk Usage {partition.mountpoint}",
                state=f"{usage.percent:.1f}",
                unit_of_measurement="%",
                state_class="measurement",
                icon="mdi:harddisk",
                attributes={
                    "total_gb": f"{usage.total / GB:.1f}",
                    "used_gb": f"{usage.used / GB:.1f}",
                    "filesystem": partition.fstype,
                },
            ))
        return readings
