"""
Captain CLI API Client
Thin wrapper around the CapRover HTTP API used during server setup.
"""

import os
import logging
from typing import Optional, Dict, Any

import requests

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"
NAMESPACE_HEADER = "x-namespace"
NAMESPACE = "captain"
AUTH_HEADER = "x-captain-auth"

# Envelope status codes returned by the server
STATUS_OK = 100
STATUS_OK_DEPLOY_STARTED = 101
STATUS_ERROR_GENERIC = 1000
STATUS_WRONG_PASSWORD = 1105
STATUS_VERIFICATION_FAILED = 1107
STATUS_UNKNOWN_ERROR = 1999

DEFAULT_TIMEOUT = 30
# Certificate issuance waits on the ACME round trip
SSL_TIMEOUT = 120


def get_request_timeout() -> int:
    """HTTP timeout in seconds, overridable with CAPTAIN_CLI_TIMEOUT."""
    try:
        timeout = int(os.environ.get("CAPTAIN_CLI_TIMEOUT", DEFAULT_TIMEOUT))
    except ValueError:
        return DEFAULT_TIMEOUT
    if timeout <= 0:
        logger.warning(f"Ignoring CAPTAIN_CLI_TIMEOUT={timeout}, using {DEFAULT_TIMEOUT}s")
        return DEFAULT_TIMEOUT
    return timeout


class CaptainApiError(Exception):
    """Error reported by (or while talking to) a CapRover server."""

    def __init__(self, status: int, description: str):
        super().__init__(description)
        self.status = status
        self.description = description

    def __str__(self) -> str:
        return f"{self.description} (status {self.status})"


class WrongPasswordError(CaptainApiError):
    """Server rejected the password."""


class VerificationFailedError(CaptainApiError):
    """Server could not verify that the root domain points back to it."""


class ServerUnreachableError(CaptainApiError):
    """No HTTP response from the server."""

    def __str__(self) -> str:
        return self.description


class AlreadyConfiguredError(CaptainApiError):
    """Server answers plain HTTP with a redirect to HTTPS, so setup already ran."""

    def __init__(self, location: str):
        super().__init__(STATUS_ERROR_GENERIC, f"Server redirects to {location}")
        self.location = location


_STATUS_ERRORS = {
    STATUS_WRONG_PASSWORD: WrongPasswordError,
    STATUS_VERIFICATION_FAILED: VerificationFailedError,
}


class CaptainApi:
    """
    Client for a single CapRover server.

    Bound to one base URL; callers build a new client whenever the server's
    address or scheme changes.
    """

    def __init__(self, base_url: str, auth_token: str = "", timeout: Optional[int] = None):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout or get_request_timeout()

    def _post(self, path: str, payload: Dict[str, Any], timeout: Optional[int] = None) -> Dict[str, Any]:
        """POST to the API and return the envelope's data, raising on any failure."""
        url = f"{self.base_url}{API_PREFIX}{path}"
        headers = {NAMESPACE_HEADER: NAMESPACE}
        if self.auth_token:
            headers[AUTH_HEADER] = self.auth_token

        logger.debug(f"POST {url}")
        try:
            response = requests.post(
                url,
                json=payload,
                headers=headers,
                timeout=timeout or self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout:
            raise ServerUnreachableError(STATUS_UNKNOWN_ERROR, f"Timed out connecting to {self.base_url}")
        except requests.exceptions.RequestException as e:
            raise ServerUnreachableError(STATUS_UNKNOWN_ERROR, f"Cannot connect to {self.base_url}: {e}")

        if response.is_redirect:
            location = response.headers.get("Location", "")
            if location.startswith("https://"):
                raise AlreadyConfiguredError(location)
            raise CaptainApiError(STATUS_UNKNOWN_ERROR, f"Unexpected redirect to {location}")

        try:
            body = response.json()
        except ValueError:
            raise CaptainApiError(
                STATUS_UNKNOWN_ERROR,
                f"HTTP {response.status_code}: {response.text[:100]}"
            )

        if not isinstance(body, dict):
            raise CaptainApiError(
                STATUS_UNKNOWN_ERROR,
                f"HTTP {response.status_code}: unexpected response body {response.text[:100]}"
            )

        status = body.get("status", STATUS_UNKNOWN_ERROR)
        description = body.get("description", "")
        logger.debug(f"{path} -> status {status}")

        if status in (STATUS_OK, STATUS_OK_DEPLOY_STARTED):
            data = body.get("data")
            return data if isinstance(data, dict) else {}

        error_class = _STATUS_ERRORS.get(status, CaptainApiError)
        raise error_class(status, description or f"HTTP {response.status_code}")

    # ============ Auth ============

    def login(self, password: str) -> str:
        """Log in and return the auth token."""
        data = self._post("/login", {"password": password})
        token = data.get("token", "")
        if not token:
            raise CaptainApiError(STATUS_UNKNOWN_ERROR, "Server did not return an auth token")
        self.auth_token = token
        return token

    def change_password(self, old_password: str, new_password: str) -> None:
        self._post("/user/changepassword", {
            "oldPassword": old_password,
            "newPassword": new_password,
        })

    # ============ System ============

    def update_root_domain(self, root_domain: str) -> None:
        """Set the root domain; the server verifies *.root_domain resolves to itself."""
        self._post("/user/system/changerootdomain", {"rootDomain": root_domain})

    def enable_root_ssl(self, email_address: str) -> None:
        """Issue a certificate for the root domain."""
        self._post(
            "/user/system/enablessl",
            {"emailAddress": email_address},
            timeout=max(self.timeout, SSL_TIMEOUT),
        )

    def force_ssl(self, enabled: bool) -> None:
        self._post("/user/system/forcessl", {"isEnabled": enabled})
