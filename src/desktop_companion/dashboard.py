"""
Dashboard Session Bootstrap

Shows the hub dashboard in an embedded view that is already logged in.

The access token is never part of a URL. Instead the view is pointed at a
blank page, the token is written into the view's local storage for the hub
origin, and only then is the view navigated to the dashboard:

    1. navigate(about:blank)
    2. wait for load, write hassTokens into local storage
    3. navigate(dashboard URL)
"""

import json
import time
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict
from urllib.parse import urlsplit

from .const import BLANK_PAGE, DASHBOARD_TOKEN_KEY
from .exceptions import ValidationError
from .utils import normalize_server_url

logger = logging.getLogger("desktop_companion.dashboard")


class DashboardView(ABC):
    """
    The embedded browser view, provided by the UI layer.

    Implementations wrap whatever webview toolkit the application uses.
    """

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Start loading ``url``; returns without waiting for the load."""

    @abstractmethod
    def wait_until_loaded(self, timeout: float) -> bool:
        """Block until the current navigation finished loading."""

    @abstractmethod
    def write_local_storage(self, origin: str, key: str, value: str) -> None:
        """
        Store ``key``/``value`` in the view's persistent local storage for
        ``origin``. Raises if the storage is not accessible.
        """

    def show(self) -> None:
        """Make the view visible."""

    def hide(self) -> None:
        """Hide the view."""


def origin_of(url: str) -> str:
    """scheme://host[:port] of a URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def build_session_credential(base_url: str, access_token: str) -> Dict[str, Any]:
    """
    Token object in the shape the hub frontend reads from local storage.

    The frontend names the base URL field ``hassUrl``.
    """
    return {
        "hassUrl": base_url,
        "access_token": access_token,
        "token_type": "Bearer",
        "clientId": f"{base_url}/",
        "expires_in": 1800,
        "refresh_token": "",
        "expires": int(time.time() * 1000) + 1800 * 1000,
    }


class DashboardBootstrap:
    """Runs the three-step load protocol against a DashboardView."""

    def __init__(self, view: DashboardView, load_timeout: float = 10.0):
        self.view = view
        self.load_timeout = load_timeout

    def load(self, server_url: str, access_token: str) -> bool:
        """
        Load the dashboard with an injected session.

        Every call repeats all three steps; a previously injected token is
        never assumed to still be valid.

        Returns:
            True if the credential was injected, False if the dashboard was
            opened without it (it will show its own login prompt)

        Raises:
            ValidationError: server URL or token missing
        """
        base_url = normalize_server_url(server_url)
        if not base_url or not access_token:
            raise ValidationError("Server URL and access token are required to load the dashboard")

        # Step 1: inert page
        self.view.navigate(BLANK_PAGE)

        # Step 2: inject once the blank page is loaded
        injected = False
        try:
            if not self.view.wait_until_loaded(self.load_timeout):
                raise TimeoutError(f"blank page did not load within {self.load_timeout}s")
            credential = build_session_credential(base_url, access_token)
            self.view.write_local_storage(origin_of(base_url), DASHBOARD_TOKEN_KEY, json.dumps(credential))
            injected = True
        except Exception as e:
            logger.warning(f"Could not inject dashboard session, falling back to hub login: {e}")

        # Step 3: only now go to the dashboard
        self.view.navigate(base_url)
        self.view.show()
        logger.info(f"Dashboard loaded from {base_url} ({'session injected' if injected else 'no session'})")
        return injected

    def hide(self) -> None:
        self.view.hide()
