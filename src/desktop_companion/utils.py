"""
Desktop Companion Utility Functions

This module provides helper functions for:
    - Runtime configuration management
    - Logging utilities
    - Server URL normalization and token masking
    - Host identification (hostname, OS, motherboard, BIOS)
"""

import sys
import copy
import logging
import platform
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass

import yaml
from platformdirs import user_config_dir, user_log_dir

from .const import APP_AUTHOR, APP_NAME

# Configure module logger
logger = logging.getLogger("desktop_companion")


# =============================================================================
# Configuration Management
# =============================================================================

def get_config_dir() -> Path:
    """Return the per-user directory holding the persisted settings record."""
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load runtime configuration from YAML file.

    Values from the file are merged over the defaults, so a partial file
    only overrides what it names.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = get_config_dir() / "companion.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}. Using defaults.")
        return get_default_config()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config: {e}")
        return get_default_config()

    if not isinstance(loaded, dict):
        return get_default_config()

    return merge_config(get_default_config(), loaded)


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "http": {
            "timeout": 30,
            "verify_ssl": False,  # local hubs commonly use self-signed certs
        },
        "registration": {
            "settle_delay": 3.0,
        },
        "scheduler": {
            "max_workers": 4,
            "startup_delay": 5.0,
        },
        "dashboard": {
            "load_timeout": 10.0,
        },
        "debug": {
            "verbose": False,
            "log_level": "INFO",
            "save_debug_logs": False,
            "debug_log_file": "debug.log",
        },
    }


# =============================================================================
# Connection helpers
# =============================================================================

def normalize_server_url(server_url: str) -> str:
    """Trim whitespace and trailing slashes from a hub URL."""
    return (server_url or "").strip().rstrip("/")


def mask_token(token: Optional[str]) -> str:
    """
    Return a display-safe version of an access token.

    Only the last four characters are kept, and only for tokens long enough
    that doing so reveals little.
    """
    if not token:
        return ""
    if len(token) <= 12:
        return "*" * 8
    return "*" * 8 + token[-4:]


# =============================================================================
# Host Identification
# =============================================================================

@dataclass
class SystemInfo:
    """Container for host identification facts."""
    hostname: str
    os_name: str
    os_version: str
    cpu_model: str
    motherboard_manufacturer: Optional[str] = None
    motherboard_model: Optional[str] = None
    bios_version: Optional[str] = None
    bios_vendor: Optional[str] = None


def _read_dmi(field: str) -> Optional[str]:
    """Read a DMI field exposed by the Linux kernel."""
    path = Path("/sys/class/dmi/id") / field
    try:
        value = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return value or None


def _collect_board_info() -> Dict[str, Optional[str]]:
    """Collect motherboard and BIOS facts for the current platform."""
    info: Dict[str, Optional[str]] = {
        "motherboard_manufacturer": None,
        "motherboard_model": None,
        "bios_version": None,
        "bios_vendor": None,
    }

    if sys.platform == "win32":
        try:
            import wmi
            c = wmi.WMI()
            for board in c.Win32_BaseBoard():
                info["motherboard_manufacturer"] = board.Manufacturer
                info["motherboard_model"] = board.Product
                break
            for bios in c.Win32_BIOS():
                info["bios_version"] = bios.SMBIOSBIOSVersion
                info["bios_vendor"] = bios.Manufacturer
                break
        except Exception as e:
            logger.debug(f"WMI board query failed: {e}")
    elif sys.platform.startswith("linux"):
        info["motherboard_manufacturer"] = _read_dmi("board_vendor")
        info["motherboard_model"] = _read_dmi("board_name")
        info["bios_version"] = _read_dmi("bios_version")
        info["bios_vendor"] = _read_dmi("bios_vendor")

    return info


def get_cpu_model() -> str:
    """Return the CPU brand string."""
    try:
        import cpuinfo
        return cpuinfo.get_cpu_info().get("brand_raw", "Unknown CPU")
    except Exception:
        return platform.processor() or "Unknown CPU"


def get_os_version() -> str:
    """Return a human readable OS version."""
    if sys.platform == "darwin":
        return platform.mac_ver()[0] or platform.release()
    if sys.platform.startswith("linux"):
        try:
            release = platform.freedesktop_os_release()
            return release.get("PRETTY_NAME") or platform.release()
        except OSError:
            return platform.release()
    return platform.version()


def get_system_info() -> SystemInfo:
    """
    Detect and return host identification facts.

    Returns:
        SystemInfo dataclass with hostname, OS and board details
    """
    board = _collect_board_info()
    return SystemInfo(
        hostname=platform.node() or "Unknown",
        os_name=platform.system(),
        os_version=get_os_version(),
        cpu_model=get_cpu_model(),
        **board,
    )


# =============================================================================
# Logging Utilities
# =============================================================================

def setup_logging(config: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Set up logging for the Desktop Companion.

    Args:
        config: Configuration dictionary

    Returns:
        Configured logger
    """
    config = config or get_default_config()
    debug_config = config.get("debug", {})

    log_level = getattr(logging, str(debug_config.get("log_level", "INFO")).upper(), logging.INFO)
    verbose = debug_config.get("verbose", False)

    # Configure package logger
    logger = logging.getLogger("desktop_companion")
    logger.setLevel(log_level)

    # Console handler
    if (verbose or log_level == logging.DEBUG) and not _has_handler(logger, logging.StreamHandler):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler (if enabled)
    if debug_config.get("save_debug_logs", False) and not _has_handler(logger, logging.FileHandler):
        log_file = Path(user_log_dir(APP_NAME, APP_AUTHOR)) / debug_config.get("debug_log_file", "debug.log")
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


def _has_handler(logger: logging.Logger, handler_type: type) -> bool:
    """Check whether a handler of exactly this type is already attached."""
    return any(type(h) is handler_type for h in logger.handlers)
