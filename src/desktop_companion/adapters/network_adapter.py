"""
Network Sensor Adapter

Received/transmitted byte counters per physical interface.
"""

import socket
from typing import List

import psutil

from .base_adapter import BaseSensorAdapter, SensorReading, safe_name

# Loopback and container/virtual bridges are skipped
VIRTUAL_PREFIXES = ("lo", "veth", "docker", "br-", "virbr", "vmnet", "utun", "awdl", "llw")


def is_virtual_interface(name: str) -> bool:
    lowered = name.lower()
    return lowered in ("loopback", "loopback pseudo-interface 1") or lowered.startswith(VIRTUAL_PREFIXES)


class NetworkAdapter(BaseSensorAdapter):
    """Network interface adapter."""

    SENSOR_IDS = ("network",)

    def initialize(self) -> bool:
        try:
            psutil.net_io_counters(pernic=True)
            self._initialized = True
            return True
        except Exception as e:
            self.record_error(str(e))
            return False

    def collect(self, sensor_id: str) -> List[SensorReading]:
        if sensor_id != "network":
            return []

        counters = psutil.net_io_counters(pernic=True)
        addresses = psutil.net_if_addrs()
        readings = []

        for iface, io in counters.items():
            if is_virtual_interface(iface):
                continue

            mac = None
            ips = []
            for addr in addresses.get(iface, []):
                if addr.family == psutil.AF_LINK:
                    mac = addr.address
                elif addr.family in (socket.AF_INET, socket.AF_INET6):
                    ips.append(addr.address)

            key = safe_name(iface)
            readings.append(SensorReading(
                unique_id=f"network_rx_{key}",
                name=f"Network RX {iface}",
                state=io.bytes_recv,
                device_class="data_size",
                unit_of_measurement="B",
                state_class="total_increasing",
                icon="mdi:download-network",
                attributes={"mac_address": mac, "ip_addresses": ips},
            ))
            readings.append(SensorReading(
                unique_id=f"network_tx_{key}",
                name=f"Network TX {iface}",
                state=io.bytes_sent,
                device_class="data_size",
                unit_of_measurement="B",
                state_class="total_increasing",
                icon="mdi:upload-network",
            ))

        return readings
