"""
Hub HTTP client.

Registration calls are authenticated with the long-lived access token;
sensor registration and state pushes go to the per-device webhook and carry
no token.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, List, Iterable

import requests

from .adapters.base_adapter import SensorReading
from .const import (
    ENDPOINT_API_ROOT,
    ENDPOINT_REGISTRATIONS,
    ENDPOINT_WEBHOOK,
    PUBLIC_IP_TIMEOUT,
    PUBLIC_IP_URL,
    WEBHOOK_GONE_STATUSES,
    WEBHOOK_REGISTER_SENSOR,
    WEBHOOK_UPDATE_SENSOR_STATES,
)
from .exceptions import PushError, RegistrationError, WebhookGoneError
from .utils import normalize_server_url

logger = logging.getLogger("desktop_companion.ha_client")


@dataclass
class RegistrationRequest:
    """Device metadata submitted at registration."""
    device_id: str
    device_name: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None


@dataclass
class RegistrationResponse:
    success: bool
    webhook_id: Optional[str] = None
    error: Optional[str] = None


def _body_excerpt(response: requests.Response, limit: int = 200) -> str:
    try:
        text = response.text or ""
    except Exception:
        return ""
    return text.strip()[:limit]


class HaClient:
    """Thin wrapper around ``requests.Session`` for the hub API."""

    def __init__(
        self,
        server_url: str,
        access_token: str,
        webhook_id: Optional[str] = None,
        timeout: float = 30,
        verify_ssl: bool = False,
        session: Optional[requests.Session] = None,
    ):
        self.server_url = normalize_server_url(server_url)
        self._access_token = access_token
        self.webhook_id = webhook_id
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.verify = verify_ssl
        self._own_session = session is None

    def __repr__(self) -> str:
        return f"HaClient(server_url={self.server_url!r}, webhook_id={'set' if self.webhook_id else None})"

    def close(self) -> None:
        if self._own_session:
            self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

    def _url(self, endpoint: str) -> str:
        return f"{self.server_url}{endpoint}"

    # -------------------------------------------------------------------------
    # Registration (bearer token)
    # -------------------------------------------------------------------------

    def check_integration_reachable(self) -> None:
        """
        Verify the hub API answers and accepts the token.

        Raises:
            RegistrationError: hub unreachable or token rejected
        """
        try:
            response = self._session.get(
                self._url(ENDPOINT_API_ROOT),
                headers=self._auth_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as err:
            raise RegistrationError(f"Cannot reach {self.server_url}: {err}") from err

        if response.status_code in (401, 403):
            raise RegistrationError("The hub rejected the access token")
        if response.status_code == 404:
            raise RegistrationError(f"No hub API found at {self.server_url}")
        if not response.ok:
            raise RegistrationError(
                f"Hub API check failed ({response.status_code}): {_body_excerpt(response)}"
            )

    def register_device(self, registration: RegistrationRequest) -> RegistrationResponse:
        """
        Register this device with the desktop app integration.

        Raises:
            RegistrationError: transport failure or non-2xx answer
        """
        try:
            response = self._session.post(
                self._url(ENDPOINT_REGISTRATIONS),
                headers=self._auth_headers,
                json=asdict(registration),
                timeout=self.timeout,
            )
        except requests.RequestException as err:
            raise RegistrationError(f"Registration request failed: {err}") from err

        if response.status_code in (401, 403):
            raise RegistrationError("The hub rejected the access token")
        if response.status_code == 404:
            raise RegistrationError(
                "The desktop app integration is not installed on the hub"
            )
        if not response.ok:
            raise RegistrationError(
                f"Registration failed ({response.status_code}): {_body_excerpt(response)}"
            )

        try:
            data = response.json()
        except ValueError as err:
            raise RegistrationError("Registration response is not valid JSON") from err
        if not isinstance(data, dict):
            raise RegistrationError("Registration response is not an object")

        return RegistrationResponse(
            success=bool(data.get("success", False)),
            webhook_id=data.get("webhook_id"),
            error=data.get("error"),
        )

    # -------------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------------

    def _post_webhook(self, command_type: str, data: Dict[str, Any], sensor_id: str = "") -> None:
        if not self.webhook_id:
            raise PushError("No webhook_id configured", sensor_id=sensor_id)

        url = self._url(ENDPOINT_WEBHOOK.format(webhook_id=self.webhook_id))
        try:
            response = self._session.post(
                url,
                json={"type": command_type, "data": data},
                timeout=self.timeout,
            )
        except requests.RequestException as err:
            raise PushError(f"Webhook request failed: {err}", sensor_id=sensor_id) from err

        if response.status_code in WEBHOOK_GONE_STATUSES:
            raise WebhookGoneError(
                f"Webhook no longer exists ({response.status_code})",
                sensor_id=sensor_id,
                status=response.status_code,
            )
        if not response.ok:
            raise PushError(
                f"Webhook call failed ({response.status_code}): {_body_excerpt(response)}",
                sensor_id=sensor_id,
                status=response.status_code,
            )

    def register_sensor(self, reading: SensorReading) -> None:
        """Create (or refresh) the hub entity for one reading."""
        self._post_webhook(
            WEBHOOK_REGISTER_SENSOR,
            reading.registration_payload(),
            sensor_id=reading.unique_id,
        )

    def register_sensors(self, readings: Iterable[SensorReading]) -> int:
        count = 0
        for reading in readings:
            self.register_sensor(reading)
            count += 1
        return count

    def update_sensors(self, readings: List[SensorReading], sensor_id: str = "") -> None:
        """Push the current state of several readings in one webhook call."""
        if not readings:
            return
        self._post_webhook(
            WEBHOOK_UPDATE_SENSOR_STATES,
            {"sensors": [r.update_payload() for r in readings]},
            sensor_id=sensor_id,
        )

    def check_webhook(self) -> bool:
        """Send an empty update to see whether the webhook still exists."""
        try:
            self._post_webhook(WEBHOOK_UPDATE_SENSOR_STATES, {"sensors": []})
        except PushError:
            return False
        return True


def get_public_ip(session: Optional[requests.Session] = None, timeout: float = PUBLIC_IP_TIMEOUT) -> str:
    """
    Return this machine's outbound public IP address.

    Useful for reverse proxy allowlists in front of the hub.

    Raises:
        requests.RequestException: network failure or non-2xx response
    """
    http = session or requests
    response = http.get(PUBLIC_IP_URL, timeout=timeout)
    response.raise_for_status()
    return response.text.strip()
