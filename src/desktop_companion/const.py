"""Constants for the Desktop Companion."""

from collections import OrderedDict

APP_NAME = "desktop-companion"
APP_AUTHOR = "DesktopCompanion"
STORE_FILENAME = "settings.yaml"

# Hub API endpoints
ENDPOINT_API_ROOT = "/api/"
ENDPOINT_REGISTRATIONS = "/api/desktop_app/registrations"
ENDPOINT_WEBHOOK = "/api/webhook/{webhook_id}"

# Webhook command types
WEBHOOK_REGISTER_SENSOR = "register_sensor"
WEBHOOK_UPDATE_SENSOR_STATES = "update_sensor_states"

# Push response codes that mean the webhook no longer exists
WEBHOOK_GONE_STATUSES = (404, 410)

PUBLIC_IP_URL = "https://api.ipify.org"
PUBLIC_IP_TIMEOUT = 5

# Local storage key the hub frontend reads its tokens from
DASHBOARD_TOKEN_KEY = "hassTokens"
BLANK_PAGE = "about:blank"

DEFAULT_UPDATE_INTERVAL = 60
DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "nl")

# Sensor catalog: id -> updates_at_interval
SENSOR_CATALOG = OrderedDict([
    ("cpu_usage", True),
    ("cpu_frequency", True),
    ("cpu_temperature", True),
    ("cpu_model", False),
    ("memory_usage", True),
    ("memory_used", True),
    ("memory_total", False),
    ("disk_usage", True),
    ("gpu", True),
    ("network", True),
    ("battery", True),
    ("os_version", False),
    ("hostname", False),
    ("motherboard", False),
    ("bios_version", False),
])


SENSOR_NAMES = {
    "en": {
        "cpu_usage": "CPU Usage",
        "cpu_frequency": "CPU Frequency",
        "cpu_temperature": "CPU Temperature",
        "cpu_model": "CPU Model",
        "memory_usage": "Memory Usage",
        "memory_used": "Memory Used",
        "memory_total": "Memory Total",
        "disk_usage": "Disk Usage",
        "gpu": "GPU Sensors",
        "network": "Network Sensors",
        "battery": "Battery Sensors",
        "os_version": "OS Version",
        "hostname": "Hostname",
        "motherboard": "Motherboard",
        "bios_version": "BIOS Version",
    },
    "nl": {
        "cpu_usage": "CPU Gebruik",
        "cpu_frequency": "CPU Snelheid",
        "cpu_temperature": "CPU Temperatuur",
        "cpu_model": "CPU Model",
        "memory_usage": "Geheugen Gebruik",
        "memory_used": "Geheugen Gebruikt",
        "memory_total": "Geheugen Totaal",
        "disk_usage": "Schijf Gebruik",
        "gpu": "GPU Sensoren",
        "network": "Netwerk Sensoren",
        "battery": "Batterij Sensoren",
        "os_version": "OS Versie",
        "hostname": "Hostnaam",
        "motherboard": "Moederbord",
        "bios_version": "BIOS Versie",
    },
}
