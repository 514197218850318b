"""
System Information Sensor Adapter

Static host facts: OS version, hostname, motherboard and BIOS.
"""

from typing import Dict, Any, Optional, List

from .base_adapter import BaseSensorAdapter, SensorReading
from ..utils import SystemInfo, get_system_info


class SystemInfoAdapter(BaseSensorAdapter):
    """Host facts adapter. Facts are looked up once and cached."""

    SENSOR_IDS = ("os_version", "hostname", "motherboard", "bios_version")

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self._info: Optional[SystemInfo] = None

    def initialize(self) -> bool:
        self._initialized = True
        return True

    @property
    def info(self) -> SystemInfo:
        if self._info is None:
            self._info = get_system_info()
        return self._info

    def collect(self, sensor_id: str) -> List[SensorReading]:
        info = self.info

        if sensor_id == "os_version":
            return [SensorReading(
                unique_id="os_version",
                name="OS Version",
                state=f"{info.os_name} {info.os_version}",
                icon="mdi:monitor",
                attributes={"os_name": info.os_name, "os_version": info.os_version},
            )]

        if sensor_id == "hostname":
            return [SensorReading(
                unique_id="hostname",
                name="Hostname",
                state=info.hostname,
                icon="mdi:desktop-tower",
            )]

        if sensor_id == "motherboard":
            if not (info.motherboard_manufacturer and info.motherboard_model):
                return []
            return [SensorReading(
                unique_id="motherboard",
                name="Motherboard",
                state=f"{info.motherboard_manufacturer} {info.motherboard_model}",
                icon="mdi:expansion-card",
                attributes={
                    "manufacturer": info.motherboard_manufacturer,
                    "model": info.motherboard_model,
                },
            )]

        if sensor_id == "bios_version":
            if not info.bios_version:
                return []
            attributes = {"vendor": info.bios_vendor} if info.bios_vendor else {}
            return [SensorReading(
                unique_id="bios_version",
                name="BIOS Version",
                state=info.bios_version,
                icon="mdi:chip",
                attributes=attributes,
            )]

        return []
