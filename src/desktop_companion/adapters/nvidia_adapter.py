"""
NVIDIA GPU Sensor Adapter

GPU usage, temperature and VRAM through pynvml (NVIDIA Management
Library), falling back to GPUtil (nvidia-smi) when NVML cannot be loaded.
"""

from typing import Dict, Any, Optional, List

try:
    import pynvml
    HAS_PYNVML = True
except ImportError:
    HAS_PYNVML = False

try:
    import GPUtil
    HAS_GPUTIL = True
except ImportError:
    HAS_GPUTIL = False

from .base_adapter import BaseSensorAdapter, SensorReading, indexed


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class NvidiaGPUAdapter(BaseSensorAdapter):
    """
    NVIDIA GPU adapter.

    Each GPU yields usage, temperature and VRAM readings; with more than
    one GPU the ids carry an index suffix (gpu_usage_0, gpu_usage_1, ...).
    """

    SENSOR_IDS = ("gpu",)

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self._use_nvml = False
        self._gpu_handles: List[Any] = []
        self._driver_version: Optional[str] = None

    def initialize(self) -> bool:
        """Initialize NVML, or check that GPUtil can see a GPU."""
        if HAS_PYNVML:
            try:
                pynvml.nvmlInit()
                count = pynvml.nvmlDeviceGetCount()
                self._gpu_handles = [pynvml.nvmlDeviceGetHandleByIndex(i) for i in range(count)]
                try:
                    self._driver_version = _decode(pynvml.nvmlSystemGetDriverVersion())
                except pynvml.NVMLError:
                    self._driver_version = None
                if self._gpu_handles:
                    self._use_nvml = True
                    self._initialized = True
                    return True
            except Exception as e:
                self.record_error(str(e))

        if HAS_GPUTIL:
            try:
                if GPUtil.getGPUs():
                    self._initialized = True
                    return True
            except Exception as e:
                self.record_error(str(e))

        return False

    def collect(self, sensor_id: str) -> List[SensorReading]:
        if sensor_id != "gpu" or not self._initialized:
            return []
        if self._use_nvml:
            return self._collect_nvml()
        return self._collect_gputil()

    def _gpu_readings(
        self,
        index: int,
        count: int,
        name: str,
        usage: Optional[float],
        temperature: Optional[float],
        vram_used_mb: Optional[float],
        vram_total_mb: Optional[float],
    ) -> List[SensorReading]:
        attributes: Dict[str, Any] = {"model": name, "vendor": "NVIDIA"}
        if self._driver_version:
            attributes["driver_version"] = self._driver_version
        if vram_total_mb is not None:
            attributes["vram_total_mb"] = round(vram_total_mb)

        readings = []
        if usage is not None:
            uid, label = indexed("gpu_usage", "GPU Usage", index, count)
            readings.append(SensorReading(
                unique_id=uid,
                name=label,
                state=f"{usage:.1f}",
                unit_of_measurement="%",
                state_class="measurement",
                icon="mdi:expansion-card",
                attributes=attributes,
            ))
        if temperature is not None:
            uid, label = indexed("gpu_temperature", "GPU Temperature", index, count)
            readings.append(SensorReading(
                unique_id=uid,
                name=label,
                state=f"{temperature:.1f}",
                device_class="temperature",
                unit_of_measurement="°C",
                state_class="measurement",
                icon="mdi:thermometer",
            ))
        if vram_used_mb is not None:
            uid, label = indexed("gpu_vram_used", "GPU VRAM Used", index, count)
            readings.append(SensorReading(
                unique_id=uid,
                name=label,
                state=f"{vram_used_mb:.0f}",
                device_class="data_size",
                unit_of_measurement="MB",
                state_class="measurement",
                icon="mdi:expansion-card-variant",
            ))
        return readings

    def _collect_nvml(self) -> List[SensorReading]:
        readings = []
        count = len(self._gpu_handles)
        for idx, handle in enumerate(self._gpu_handles):
            name = _decode(pynvml.nvmlDeviceGetName(handle))

            usage = temperature = vram_used = vram_total = None
            try:
                usage = pynvml.nvmlDeviceGetUtilizationRates(handle).gpu
            except pynvml.NVMLError:
                pass
            try:
                temperature = pynvml.nvmlDeviceGetTemperature(handle, pynvml.NVML_TEMPERATURE_GPU)
            except pynvml.NVMLError:
                pass
            try:
                mem = pynvml.nvmlDeviceGetMemoryInfo(handle)
                vram_used = mem.used / (1024 ** 2)
                vram_total = mem.total / (1024 ** 2)
            except pynvml.NVMLError:
                pass

            readings.extend(self._gpu_readings(idx, count, name, usage, temperature, vram_used, vram_total))
        return readings

    def _collect_gputil(self) -> List[SensorReading]:
        gpus = GPUtil.getGPUs()
        readings = []
        for idx, gpu in enumerate(gpus):
            if gpu.driver and not self._driver_version:
                self._driver_version = gpu.driver
            readings.extend(self._gpu_readings(
                idx,
                len(gpus),
                gpu.name,
                gpu.load * 100 if gpu.load is not None else None,
                gpu.temperature,
                gpu.memoryUsed,
                gpu.memoryTotal,
            ))
        return readings

    def cleanup(self) -> None:
        if self._use_nvml:
            try:
                pynvml.nvmlShutdown()
            except Exception:
                pass
        self._use_nvml = False
        self._gpu_handles = []
        self._initialized = False
