import logging
import platform
import time
from typing import Any, Dict, Optional

import httpx

from cortex_cli import __version__
from cortex_cli.errors import ApiError

logger = logging.getLogger(__name__)

API_PREFIX = "/fabric/v4"


def get_user_agent() -> str:
    return f"cortex-cli/{__version__} ({platform.system()}; {platform.machine()}; {platform.release()})"


class APIClient:
    """HTTP client for the Cortex fabric API with retry support."""

    def __init__(self, base_url: str, token: Optional[str] = None, retries: int = 3, retry_delay: float = 1.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = 30.0
        self.retries = retries
        self.retry_delay = retry_delay

    def _get_headers(self, content_type: Optional[str] = "application/json") -> Dict[str, str]:
        """Get headers with auth token if available."""
        headers = {"User-Agent": get_user_agent()}
        if content_type:
            headers["Content-Type"] = content_type
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = True,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """Make HTTP request to API with optional retry."""
        url = f"{self.base_url}{endpoint}"
        headers = {**self._get_headers(), **(headers or {})}

        attempts = self.retries if retry else 1
        last_error = None

        for attempt in range(attempts):
            try:
                logger.debug("request %s %s params=%s", method, url, params)
                with httpx.Client(timeout=self.timeout, follow_redirects=False) as client:
                    response = client.request(
                        method=method,
                        url=url,
                        headers=headers,
                        json=json,
                        params=params
                    )
                logger.debug("response %s %s -> %s", method, url, response.status_code)
                auth_error = response.headers.get("x-auth-error")
                if auth_error:
                    raise ApiError(f"Auth Error: {auth_error}", status_code=401)
                return response
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_error = e
                if attempt < attempts - 1:
                    time.sleep(self.retry_delay * (attempt + 1))

        raise last_error

    def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = True,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """GET request."""
        return self.request("GET", endpoint, params=params, retry=retry, headers=headers)

    def post(self, endpoint: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """POST request."""
        return self.request("POST", endpoint, json=json)

    def delete(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """DELETE request."""
        return self.request("DELETE", endpoint, params=params)

    # ============= Info API =============
    def get_info(self) -> Dict[str, Any]:
        """
        Fetch server information (clock and feature flags).

        Not retried: a failure here propagates to the caller.
        """
        try:
            response = self.get(f"{API_PREFIX}/info", retry=False)
        except httpx.HTTPError as e:
            raise ApiError(f"Unable to reach {self.base_url}: {e}")
        if response.status_code != 200:
            raise ApiError(
                f"Failed to get server info: {response.status_code} {response.text}",
                status_code=response.status_code
            )
        try:
            info = response.json()
        except ValueError as e:
            raise ApiError(f"Invalid server info response from {self.base_url}: {e}")
        if not isinstance(info, dict):
            raise ApiError(f"Invalid server info response from {self.base_url}: expected a JSON object")
        return info

    # ============= Compatibility API =============
    def get_required_version(self, application: str = "cortex-cli") -> str:
        """Fetch the version range of ``application`` the cluster supports."""
        try:
            response = self.get(
                f"/v3/catalog/compatibility/applications/{application}",
                retry=False,
                headers={"x-cortex-proxy-notify": "true"}
            )
        except httpx.HTTPError as e:
            raise ApiError(f"Unable to reach {self.base_url}: {e}")
        if response.status_code != 200:
            raise ApiError("Unable to fetch compatibility", status_code=response.status_code)
        try:
            requirement = response.json().get("semver")
        except (ValueError, AttributeError):
            requirement = None
        if not isinstance(requirement, str) or not requirement.strip():
            raise ApiError("Unable to fetch compatibility: response has no semver range")
        return requirement

    # ============= Resources API =============
    def list_resources(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """List resources under a collection path."""
        return self.get(f"{API_PREFIX}/{path}", params=params or None)

    def get_resource(self, path: str, name: str) -> httpx.Response:
        """Get a single resource by name."""
        return self.get(f"{API_PREFIX}/{path}/{name}")

    def delete_resource(self, path: str, name: str) -> httpx.Response:
        """Delete a resource by name."""
        return self.delete(f"{API_PREFIX}/{path}/{name}")


def get_api_client(profile) -> APIClient:
    """Get API client instance for a resolved profile."""
    return APIClient(profile.url, token=profile.token)
