"""
Sensor Adapters Module

Adapters read hardware state and produce hub-ready SensorReading objects.
Contributors can add new adapters by implementing BaseSensorAdapter.

Available Adapters:
    - cpu_adapter: CPU usage, frequency, temperature, model
    - memory_adapter: RAM usage and totals
    - disk_adapter: Per-partition disk usage
    - nvidia_adapter: NVIDIA GPU metrics via pynvml / GPUtil
    - network_adapter: Per-interface traffic counters
    - battery_adapter: Battery level and charging state
    - system_adapter: OS, hostname, motherboard, BIOS
"""

from .base_adapter import BaseSensorAdapter, SensorReading
from .battery_adapter import BatteryAdapter
from .collector import SensorCollector
from .cpu_adapter import CPUAdapter
from .disk_adapter import DiskAdapter
from .memory_adapter import MemoryAdapter
from .network_adapter import NetworkAdapter
from .nvidia_adapter import NvidiaGPUAdapter
from .system_adapter import SystemInfoAdapter

__all__ = [
    "BaseSensorAdapter",
    "SensorReading",
    "SensorCollector",
    "CPUAdapter",
    "MemoryAdapter",
    "DiskAdapter",
    "NvidiaGPUAdapter",
    "NetworkAdapter",
    "BatteryAdapter",
    "SystemInfoAdapter",
]
