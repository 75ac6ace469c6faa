"""Content Management API client - typed wrapper over the CMA REST endpoints.

Usage:
    async with CMAClient(config) as cma:
        entry = await cma.entries.get("entry_id")
        asset = await cma.assets.get(entry.asset_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import httpx

from ..errors import DecodeError, RemoteError, TransportError

if TYPE_CHECKING:
    from .assets import AssetsAPI
    from .entries import EntriesAPI

logger = logging.getLogger(__name__)

CMA_BASE_URL = "https://api.contentful.com"
UPLOAD_BASE_URL = "https://upload.contentful.com"
CMA_CONTENT_TYPE = "application/vnd.contentful.management.v1+json"

# Response bodies quoted in error messages are capped at this many characters.
ERROR_BODY_LIMIT = 4096


@dataclass(frozen=True)
class CMAConfig:
    """Connection settings shared by every call in a run."""

    token: str
    space_id: str
    environment: str = "testing_env"
    auth_header: str = "Authorization"
    auth_scheme: str = "Bearer"
    timeout: float = 20.0
    locale: str = "en-US"
    reference_field: str = "downloadableFile"
    poll_interval: float = 1.0
    poll_attempts: int = 60
    base_url: str = CMA_BASE_URL
    upload_url: str = UPLOAD_BASE_URL

    @property
    def auth_value(self) -> str:
        """Credential header value, e.g. ``Bearer <token>``."""
        return f"{self.auth_scheme} {self.token}".strip()

    @property
    def environment_path(self) -> str:
        return f"/spaces/{self.space_id}/environments/{self.environment}"

    def to_dict(self) -> dict[str, Any]:
        """Export config as dictionary with the token masked."""
        return {
            "token": (self.token[:6] + "...") if self.token else None,
            "space_id": self.space_id,
            "environment": self.environment,
            "auth_header": self.auth_header,
            "auth_scheme": self.auth_scheme,
            "timeout": self.timeout,
            "locale": self.locale,
            "reference_field": self.reference_field,
        }


def _body_snippet(response: httpx.Response) -> str:
    try:
        text = response.text
    except Exception:
        return ""
    return text[:ERROR_BODY_LIMIT].strip()


class CMAClient:
    """Content Management API client with entry and asset sub-APIs.

    The underlying ``httpx.AsyncClient`` is created on enter and closed on
    exit; the sub-APIs are only available inside the ``async with`` block.
    """

    def __init__(self, config: CMAConfig):
        self.config = config
        self._client: httpx.AsyncClient | None = None

        self._entries: EntriesAPI | None = None
        self._assets: AssetsAPI | None = None

    async def __aenter__(self) -> "CMAClient":
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers={
                self.config.auth_header: self.config.auth_value,
                "Content-Type": CMA_CONTENT_TYPE,
                "Accept": "application/json",
            },
        )

        from .assets import AssetsAPI
        from .entries import EntriesAPI

        self._entries = EntriesAPI(self)
        self._assets = AssetsAPI(self)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def entries(self) -> "EntriesAPI":
        """Entries API."""
        if not self._entries:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        return self._entries

    @property
    def assets(self) -> "AssetsAPI":
        """Assets API."""
        if not self._assets:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        return self._assets

    def env_path(self, *parts: str) -> str:
        """Build ``/spaces/{space}/environments/{env}/<parts>``."""
        suffix = "/".join(p.strip("/") for p in parts if p)
        base = self.config.environment_path
        return f"{base}/{suffix}" if suffix else base

    # HTTP plumbing
    async def _send(
        self,
        method: str,
        url: str,
        *,
        context: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: Any = None,
        headers: dict[str, str] | None = None,
        version: int | None = None,
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        request_headers = dict(headers or {})
        if version is not None:
            request_headers["X-Contentful-Version"] = str(version)

        logger.debug("%s %s (%s)", method, url, context)
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                content=content,
                headers=request_headers or None,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{context}: {e.__class__.__name__}: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise RemoteError(response.status_code, _body_snippet(response), context=context)
        return response

    async def _request(self, method: str, url: str, *, context: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and decode its JSON object body."""
        response = await self._send(method, url, context=context, **kwargs)
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(f"{context}: malformed response body: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError(f"{context}: expected a JSON object")
        return data

    async def _get(self, endpoint: str, *, context: str, **params: Any) -> dict[str, Any]:
        """Make GET request."""
        return await self._request("GET", endpoint, context=context, params=params or None)

    async def _post(self, endpoint: str, data: Any = None, *, context: str, **kwargs: Any) -> dict[str, Any]:
        """Make POST request."""
        return await self._request("POST", endpoint, context=context, json=data, **kwargs)

    async def _put(self, endpoint: str, data: Any = None, *, context: str, **kwargs: Any) -> dict[str, Any]:
        """Make PUT request."""
        return await self._request("PUT", endpoint, context=context, json=data, **kwargs)

    async def _patch(self, endpoint: str, data: Any = None, *, context: str, **kwargs: Any) -> dict[str, Any]:
        """Make PATCH request."""
        return await self._request("PATCH", endpoint, context=context, json=data, **kwargs)

    async def _delete(self, endpoint: str, *, context: str, **kwargs: Any) -> dict[str, Any]:
        """Make DELETE request."""
        return await self._request("DELETE", endpoint, context=context, **kwargs)
