"""API client for a remote Cloudflow server."""

from __future__ import annotations

import logging
import os
import random
import threading
import time
from pathlib import Path
from typing import Any

import httpx

from .exceptions import (
    CloudflowAPIError,
    CloudflowAuthenticationError,
    CloudflowInvalidResponseError,
    CloudflowNetworkError,
)

logger = logging.getLogger(__name__)

PORTAL_ENDPOINT = "portal.cgi"


class CloudflowClient:
    """Client for the Cloudflow portal API.

    API calls are JSON documents posted to ``<host>/portal.cgi`` with a
    ``method`` key. File transfers use the ``asset=upload_file`` and
    ``asset=download_file`` query variants of the same endpoint.
    """

    def __init__(
        self,
        host: str,
        session: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the Cloudflow client.

        Args:
            host: Base URL of the Cloudflow server, e.g. http://localhost:9090
            session: Existing session key, skips :meth:`create_session`
            max_retries: Maximum number of retry attempts for API calls
            retry_delay: Initial delay between retries in seconds
            timeout: Request timeout in seconds
            verify: Verify the SSL certificate of the server
            transport: Optional httpx transport (used by tests)
        """
        self.host = host.rstrip("/")
        self.session = session
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.verify = verify
        self._transport = transport
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    @property
    def address(self) -> str:
        return f"{self.host}/{PORTAL_ENDPOINT}"

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client shared by all worker threads."""
        client = self._client
        if client is not None and not client.is_closed:
            return client
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                    verify=self.verify,
                    transport=self._transport,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                self._client.close()
            self._client = None

    def __enter__(self) -> CloudflowClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[CloudflowAPIError, bool]:
        """Map an HTTP error to a pycloudflow error and decide on a retry.

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code
        if status_code in (401, 403):
            return (
                CloudflowAuthenticationError(
                    "Cloudflow rejected the session or credentials", status_code
                ),
                False,
            )

        error = CloudflowAPIError(
            f"API request failed with status {status_code}", status_code
        )
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    @staticmethod
    def _check_api_error(method: str, data: Any) -> None:
        """Raise if the JSON answer of the portal describes an error."""
        if not isinstance(data, dict):
            return
        messages = data.get("messages")
        if "error" in data:
            detail = data.get("error")
            if isinstance(messages, list) and messages:
                detail = "\n".join(
                    str(message.get("description", message))
                    if isinstance(message, dict)
                    else str(message)
                    for message in messages
                )
            raise CloudflowAPIError(f"{method} failed: {detail}")

    def call(self, method: str, **params: Any) -> Any:
        """Call a portal API method with retry logic.

        Args:
            method: Dotted API method name, e.g. ``file.does_exist``
            **params: Parameters of the method

        Returns:
            Decoded JSON answer

        Raises:
            CloudflowAPIError: If the call fails after all retries
        """
        body: dict[str, Any] = {"method": method}
        if self.session:
            body["session"] = self.session
        body.update(params)

        client = self._get_client()
        last_exception: CloudflowAPIError | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.post(self.address, json=body)
                response.raise_for_status()
                try:
                    data = response.json()
                except ValueError as e:
                    raise CloudflowInvalidResponseError(
                        f"Invalid JSON response from Cloudflow for {method}"
                    ) from e
                self._check_api_error(method, data)
                return data

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry:
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e
            except CloudflowAPIError:
                raise
            except httpx.RequestError as e:
                error = CloudflowNetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < self.max_retries:
                    logger.debug("Retrying %s after network error: %s", method, e)
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise CloudflowAPIError("Request failed after all retry attempts")

    # =========================
    # Session and server info
    # =========================

    def create_session(self, login: str, password: str) -> str:
        """Log in and keep the session key for all further calls."""
        result = self.call("auth.create_session", user_name=login, user_pass=password)
        session = result.get("session") if isinstance(result, dict) else None
        if not session:
            raise CloudflowAuthenticationError(f"Could not log in as {login}")
        self.session = session
        return session

    def get_version(self) -> str:
        """Return the version string of the running Cloudflow.

        Raises:
            CloudflowInvalidResponseError: If the answer holds no version
        """
        result = self.call("portal.version")
        if isinstance(result, dict):
            if "version" in result:
                return str(result["version"])
            if "major" in result:
                return (
                    f"{result.get('major')}.{result.get('minor')}."
                    f"{result.get('rev', result.get('patch'))}"
                )
        raise CloudflowInvalidResponseError("Cloudflow did not report a version")

    def get_license(self) -> dict[str, Any]:
        result = self.call("license.get")
        if not isinstance(result, dict):
            raise CloudflowInvalidResponseError("Unexpected license record")
        return result

    def list_installed_apps(self, name: str) -> list[dict[str, Any]]:
        result = self.call("registry.cfapp.list", query=["name", "equal to", name])
        return list(result.get("results") or [])

    # =========================
    # Files
    # =========================

    def does_exist(self, url: str) -> dict[str, Any]:
        """Check whether a file or folder exists.

        Returns:
            Dictionary with ``exists``, ``is_folder`` and ``url`` keys
        """
        result = self.call("file.does_exist", url=url)
        return {
            "exists": bool(result.get("exists")),
            "is_folder": bool(result.get("is_folder")),
            "url": result.get("url", url),
        }

    def list_assets(
        self, query: list[Any], fields: list[str] | None = None
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"query": query}
        if fields is not None:
            params["fields"] = fields
        result = self.call("asset.list", **params)
        return list(result.get("results") or [])

    def delete_file(self, url: str) -> Any:
        return self.call("file.delete_file", url=url)

    def upload_file(self, fs_path: Path, url: str) -> int:
        """Upload a local file, creating the remote folders on the way.

        Returns:
            HTTP status code of the upload

        Raises:
            CloudflowAPIError: If Cloudflow answers with a non-200 status
            CloudflowNetworkError: If the request fails
        """
        params = {
            "asset": "upload_file",
            "session": self.session or "",
            "url": url,
            "create_folders": "true",
        }
        client = self._get_client()
        try:
            with open(fs_path, "rb") as f:
                response = client.post(
                    self.address, params=params, files={"file": (fs_path.name, f)}
                )
        except httpx.RequestError as e:
            raise CloudflowNetworkError(f"Network error during upload: {e}") from e

        if response.status_code != 200:
            raise CloudflowAPIError(
                f"upload of {url} failed with status {response.status_code}",
                response.status_code,
            )
        return response.status_code

    def download_file(self, url: str, output_path: Path) -> Path:
        """Download a remote file into ``output_path``.

        The body is streamed into ``<name>.part`` next to the target and
        moved onto it once complete.

        Raises:
            CloudflowAPIError: If Cloudflow answers with a non-200 status
            CloudflowNetworkError: If the request fails
        """
        params = {
            "asset": "download_file",
            "session": self.session or "",
            "url": url,
        }
        partial_path = output_path.with_name(output_path.name + ".part")
        client = self._get_client()
        try:
            with client.stream("GET", self.address, params=params) as response:
                if response.status_code != 200:
                    raise CloudflowAPIError(
                        f"download of {url} failed with status "
                        f"{response.status_code}",
                        response.status_code,
                    )
                with open(partial_path, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        if chunk:
                            f.write(chunk)
            os.replace(partial_path, output_path)
        except httpx.RequestError as e:
            raise CloudflowNetworkError(f"Network error during download: {e}") from e
        finally:
            if partial_path.exists():
                partial_path.unlink()
        return output_path

    # =========================
    # Workflows
    # =========================

    def list_whitepapers(self, name: str) -> list[dict[str, Any]]:
        result = self.call("whitepaper.list", query=["name", "equal to", name])
        return list(result.get("results") or [])

    def create_whitepaper(self, whitepaper: dict[str, Any]) -> Any:
        return self.call("whitepaper.create", whitepaper=whitepaper)

    def delete_whitepaper(self, whitepaper_id: str) -> Any:
        return self.call("whitepaper.delete", id=whitepaper_id)
