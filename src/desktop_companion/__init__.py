"""
Desktop Companion - Home Assistant Desktop Companion Core

Mirrors this machine's identity and live system metrics into a Home Assistant
hub and prepares the hub dashboard for an embedded, pre-authenticated view.

Modules:
    - config_store: Persisted connection settings, device identity, sensor enablement
    - sensor_registry: Catalog of sensors with persisted enabled flags
    - registration: Device registration protocol with the hub
    - scheduler: Periodic sensor pushes through the device webhook
    - dashboard: Embedded dashboard session bootstrap
    - companion: Backend context and asynchronous command surface
    - adapters: psutil/pynvml based sensor collection
"""

__version__ = "1.0.0"
__author__ = "Desktop Companion Contributors"
__license__ = "Apache-2.0"
