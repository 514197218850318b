"""
Desktop Companion Config Store

Durable record of connection settings, device identity and sensor
enablement. The whole record lives in a single YAML file and is rewritten
atomically on every save.

Structure of settings.yaml:
    settings:
        server_url, access_token, update_interval, language, autostart
    identity:
        device_id, webhook_id, is_registered
    enabled_sensors:
        {sensor_id: bool}
"""

import os
import logging
import tempfile
import threading
from pathlib import Path
from dataclasses import dataclass, field, asdict, replace
from typing import Dict, Any, Optional

import yaml

from .const import (
    DEFAULT_LANGUAGE,
    DEFAULT_UPDATE_INTERVAL,
    STORE_FILENAME,
    SUPPORTED_LANGUAGES,
)
from .exceptions import StorageError, ValidationError
from .utils import get_config_dir, mask_token, normalize_server_url

logger = logging.getLogger("desktop_companion.config_store")


@dataclass(frozen=True)
class ConnectionSettings:
    """Connection and preference state."""
    server_url: str = ""
    access_token: str = ""
    update_interval: int = DEFAULT_UPDATE_INTERVAL
    language: str = DEFAULT_LANGUAGE
    autostart: bool = False

    @property
    def is_configured(self) -> bool:
        """True when both the hub URL and the access token are set."""
        return bool(self.server_url and self.access_token)

    @property
    def masked_token(self) -> str:
        return mask_token(self.access_token)

    def __repr__(self) -> str:
        return (
            f"ConnectionSettings(server_url={self.server_url!r}, "
            f"access_token={self.masked_token!r}, "
            f"update_interval={self.update_interval}, "
            f"language={self.language!r}, autostart={self.autostart})"
        )


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity of this device as known to the hub."""
    device_id: str = ""
    webhook_id: Optional[str] = None
    is_registered: bool = False


@dataclass(frozen=True)
class PersistedState:
    """Snapshot of the full persisted record."""
    settings: ConnectionSettings = field(default_factory=ConnectionSettings)
    identity: DeviceIdentity = field(default_factory=DeviceIdentity)
    enabled_sensors: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settings": asdict(self.settings),
            "identity": asdict(self.identity),
            "enabled_sensors": dict(self.enabled_sensors),
        }


SETTINGS_FIELDS = frozenset(ConnectionSettings.__dataclass_fields__)
IDENTITY_FIELDS = frozenset(DeviceIdentity.__dataclass_fields__)


def _validate_settings(values: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and normalize ConnectionSettings fields."""
    cleaned = dict(values)

    if "server_url" in cleaned:
        if not isinstance(cleaned["server_url"], str):
            raise ValidationError("Server URL must be a string")
        url = normalize_server_url(cleaned["server_url"])
        if url and not url.startswith(("http://", "https://")):
            raise ValidationError("Server URL must start with http:// or https://")
        cleaned["server_url"] = url

    if "access_token" in cleaned:
        if not isinstance(cleaned["access_token"], str):
            raise ValidationError("Access token must be a string")
        cleaned["access_token"] = cleaned["access_token"].strip()

    if "update_interval" in cleaned:
        interval = cleaned["update_interval"]
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            raise ValidationError("Update interval must be a whole number of seconds (at least 1)")

    if "language" in cleaned and cleaned["language"] not in SUPPORTED_LANGUAGES:
        raise ValidationError(
            f"Unsupported language {cleaned['language']!r}; "
            f"choose one of: {', '.join(SUPPORTED_LANGUAGES)}"
        )

    if "autostart" in cleaned and not isinstance(cleaned["autostart"], bool):
        raise ValidationError("Autostart must be true or false")

    return cleaned


def _validate_identity(values: Dict[str, Any]) -> Dict[str, Any]:
    """Validate DeviceIdentity fields."""
    if "device_id" in values and not isinstance(values["device_id"], str):
        raise ValidationError("Device id must be a string")
    if "webhook_id" in values and values["webhook_id"] is not None and not isinstance(values["webhook_id"], str):
        raise ValidationError("Webhook id must be a string")
    if "is_registered" in values and not isinstance(values["is_registered"], bool):
        raise ValidationError("Registration flag must be true or false")
    return values


class ConfigStore:
    """
    Serialized, atomic access to the persisted settings record.

    ``get`` and ``save`` share one lock: a reader never observes a
    half-applied save and two saves never interleave their writes.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            path: Location of the YAML record (default: user config dir)
        """
        if path is None:
            path = get_config_dir() / STORE_FILENAME
        self.path = Path(path)
        self._lock = threading.RLock()

    def get(self) -> PersistedState:
        """
        Load the persisted record.

        Returns:
            PersistedState; defaults when no record exists yet

        Raises:
            StorageError: the record exists but cannot be read or parsed
        """
        with self._lock:
            return self._read()

    def save(
        self,
        settings: Optional[ConnectionSettings] = None,
        identity: Optional[DeviceIdentity] = None,
        enabled_sensors: Optional[Dict[str, bool]] = None,
        **fields: Any,
    ) -> PersistedState:
        """
        Apply a partial update and rewrite the whole record.

        Keyword fields may name any ConnectionSettings or DeviceIdentity
        field; everything not provided is left untouched.

        Returns:
            The new PersistedState

        Raises:
            ValidationError: unknown field or invalid value (nothing written)
            StorageError: the record could not be written
        """
        unknown = set(fields) - SETTINGS_FIELDS - IDENTITY_FIELDS
        if unknown:
            raise ValidationError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")

        settings_updates = {k: v for k, v in fields.items() if k in SETTINGS_FIELDS}
        identity_updates = {k: v for k, v in fields.items() if k in IDENTITY_FIELDS}
        if settings is not None:
            settings_updates = {**asdict(settings), **settings_updates}
        if identity is not None:
            identity_updates = {**asdict(identity), **identity_updates}

        settings_updates = _validate_settings(settings_updates)
        identity_updates = _validate_identity(identity_updates)
        if enabled_sensors is not None:
            for sensor_id, enabled in enabled_sensors.items():
                if not isinstance(enabled, bool):
                    raise ValidationError(f"Enabled flag for {sensor_id!r} must be true or false")

        with self._lock:
            try:
                current = self._read()
            except StorageError as e:
                logger.warning(f"Replacing unreadable settings record: {e}")
                current = PersistedState()

            new_state = PersistedState(
                settings=replace(current.settings, **settings_updates),
                identity=replace(current.identity, **identity_updates),
                enabled_sensors=(
                    {**current.enabled_sensors, **enabled_sensors}
                    if enabled_sensors is not None
                    else dict(current.enabled_sensors)
                ),
            )
            self._write(new_state)

        changed = sorted(set(settings_updates) | set(identity_updates))
        if enabled_sensors:
            changed.append("enabled_sensors")
        logger.debug(f"Saved settings record ({', '.join(changed) or 'no changes'})")
        return new_state

    def set_sensor_enabled(self, sensor_id: str, enabled: bool) -> PersistedState:
        """Persist a single sensor enablement flag."""
        return self.save(enabled_sensors={sensor_id: enabled})

    def _read(self) -> PersistedState:
        """Read and parse the record file (caller holds the lock)."""
        if not self.path.exists():
            return PersistedState()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Cannot read settings record {self.path}: {e}") from e

        if data is None:
            return PersistedState()
        if not isinstance(data, dict):
            raise StorageError(f"Settings record {self.path} is not a mapping")

        try:
            settings_data = data.get("settings") or {}
            identity_data = data.get("identity") or {}
            enabled = data.get("enabled_sensors") or {}
            settings = ConnectionSettings(**{
                k: v for k, v in settings_data.items() if k in SETTINGS_FIELDS
            })
            identity = DeviceIdentity(**{
                k: v for k, v in identity_data.items() if k in IDENTITY_FIELDS
            })
            enabled_sensors = {}
            for sensor_id, flag in enabled.items():
                if not isinstance(flag, bool):
                    logger.warning(
                        f"Ignoring non-boolean enabled flag for {sensor_id!r} in {self.path}: {flag!r}"
                    )
                    continue
                enabled_sensors[str(sensor_id)] = flag
        except (AttributeError, TypeError) as e:
            raise StorageError(f"Settings record {self.path} is malformed: {e}") from e

        return PersistedState(settings=settings, identity=identity, enabled_sensors=enabled_sensors)

    def _write(self, state: PersistedState) -> None:
        """Atomically replace the record file (caller holds the lock)."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".settings-", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump(state.to_dict(), f, default_flow_style=False, sort_keys=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write settings record {self.path}: {e}") from e
