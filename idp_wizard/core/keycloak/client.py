"""Low-level HTTP client for Keycloak Admin API.

Handles bearer authentication, per-call deadlines and error mapping.
"""
from __future__ import annotations
import os
from typing import Optional, Dict, Any

import requests

from .exceptions import KeycloakAPIError

REQUEST_TIMEOUT = 5


class KeycloakClient:
    """HTTP client for Keycloak Admin API calls made on behalf of an operator.

    The wizard acts with the operator's own access token, so no client
    credentials are stored here.

    Usage:
        client = KeycloakClient("http://keycloak:8080", token=access_token)
        response = client.post("/admin/realms/demo/identity-provider/instances", json=payload)
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: float = REQUEST_TIMEOUT):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL (defaults to KEYCLOAK_INTERNAL_URL env var)
            token: Bearer access token of the operator
            timeout: Default request deadline in seconds
        """
        self.base_url = (base_url or os.environ.get("KEYCLOAK_INTERNAL_URL", "http://keycloak:8080")).rstrip("/")
        self._token = token
        self.timeout = timeout

    def get(self, path: str, params: Optional[Dict] = None, timeout: Optional[float] = None, **kwargs) -> requests.Response:
        """Execute GET request.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        url = f"{self.base_url}{path}"
        resp = requests.get(
            url,
            params=params,
            headers=self._headers(kwargs.pop("headers", {})),
            timeout=timeout or self.timeout,
            **kwargs,
        )
        self._handle_error(resp)
        return resp

    def post(
        self,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> requests.Response:
        """Execute POST request.

        Args:
            path: API endpoint path
            json: JSON payload
            params: Query parameters
            timeout: Deadline for this call, overrides the client default

        Raises:
            KeycloakAPIError: On HTTP error
        """
        url = f"{self.base_url}{path}"
        resp = requests.post(
            url,
            json=json,
            params=params,
            headers=self._headers(kwargs.pop("headers", {})),
            timeout=timeout or self.timeout,
            **kwargs,
        )
        self._handle_error(resp)
        return resp

    def _headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        if not self._token:
            raise KeycloakAPIError(401, "Not authenticated - no operator access token", self.base_url)
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise KeycloakAPIError if response status indicates error."""
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)
