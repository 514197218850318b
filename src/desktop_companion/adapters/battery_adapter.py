"""
Battery Sensor Adapter

Charge level and charging state via psutil. Desktops without a battery
report nothing.
"""

from typing import List

import psutil

from .base_adapter import BaseSensorAdapter, SensorReading


class BatteryAdapter(BaseSensorAdapter):
    """Battery adapter."""

    SENSOR_IDS = ("battery",)

    def initialize(self) -> bool:
        self._initialized = hasattr(psutil, "sensors_battery")
        return self._initialized

    def collect(self, sensor_id: str) -> List[SensorReading]:
        if sensor_id != "battery":
            return []

        battery = psutil.sensors_battery()
        if battery is None:
            return []

        charging = bool(battery.power_plugged)
        if charging and battery.percent >= 100:
            state = "Full"
        elif charging:
            state = "Charging"
        else:
            state = "Discharging"

        attributes = {"state": state}
        if battery.secsleft not in (psutil.POWER_TIME_UNLIMITED, psutil.POWER_TIME_UNKNOWN):
            attributes["time_remaining_min"] = int(battery.secsleft // 60)

        return [
            SensorReading(
                unique_id="battery_level",
                name="Battery Level",
                state=f"{battery.percent:.0f}",
                device_class="battery",
                unit_of_measurement="%",
                state_class="measurement",
                icon="mdi:battery",
                attributes=attributes,
            ),
            SensorReading(
                unique_id="battery_charging",
                name="Battery Charging",
                state=charging,
                sensor_type="binary_sensor",
                device_class="battery_charging",
                icon="mdi:battery-charging",
            ),
        ]
