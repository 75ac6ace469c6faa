"""Entries API - read, repoint and publish content entries."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..errors import DecodeError
from ..models import Entry

if TYPE_CHECKING:
    from .client import CMAClient

JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"


def asset_link(asset_id: str) -> dict[str, Any]:
    """Typed link descriptor pointing at an asset."""
    return {"sys": {"type": "Link", "linkType": "Asset", "id": asset_id}}


class EntriesAPI:
    """Entries API for the Content Management API.

    Usage:
        async with CMAClient(config) as cma:
            entry = await cma.entries.get("entry_id")
            version = await cma.entries.patch_asset_link(entry.id, "new_asset", entry.version)
            await cma.entries.publish(entry.id, version)
    """

    def __init__(self, client: "CMAClient"):
        self._client = client

    @property
    def _config(self):
        return self._client.config

    async def get(self, entry_id: str) -> Entry:
        """Fetch an entry and extract its linked asset id."""
        data = await self._client._get(
            self._client.env_path("entries", entry_id),
            context="fetch entry",
        )
        return Entry.from_api(data, self._config.reference_field, self._config.locale)

    async def list(
        self,
        limit: int = 100,
        skip: int = 0,
        content_type: str | None = None,
    ) -> tuple[list[Entry], int]:
        """List entries, optionally filtered by content type.

        Returns:
            (entries, total) where total is the collection size reported by the API
        """
        params: dict[str, Any] = {"limit": min(int(limit), 1000), "skip": int(skip)}
        if content_type:
            params["content_type"] = content_type
        data = await self._client._get(
            self._client.env_path("entries"),
            context="list entries",
            **params,
        )
        items = data.get("items")
        if not isinstance(items, list):
            raise DecodeError("list entries: missing items")
        entries = [
            Entry.from_api(item, self._config.reference_field, self._config.locale)
            for item in items
        ]
        total = data.get("total")
        return entries, total if isinstance(total, int) else len(entries)

    async def patch_asset_link(
        self,
        entry_id: str,
        new_asset_id: str,
        version: int,
        field_key: str | None = None,
        locale: str | None = None,
    ) -> int:
        """Point ``fields.<field_key>.<locale>`` at ``new_asset_id``.

        Args:
            entry_id: Entry to patch
            new_asset_id: Asset the field should link to
            version: Entry version the patch is based on
            field_key: Reference field (default: configured reference field)
            locale: Field locale (default: configured locale)

        Returns:
            The version assigned by the backend after the patch.
        """
        field_key = field_key or self._config.reference_field
        locale = locale or self._config.locale
        patch = [
            {
                "op": "replace",
                "path": f"/fields/{field_key}/{locale}",
                "value": asset_link(new_asset_id),
            }
        ]
        data = await self._client._patch(
            self._client.env_path("entries", entry_id),
            patch,
            context="patch entry",
            headers={"Content-Type": JSON_PATCH_CONTENT_TYPE},
            version=version,
        )
        sys = data.get("sys")
        if not isinstance(sys, dict) or not isinstance(sys.get("version"), int):
            raise DecodeError("patch entry: response missing sys.version")
        return sys["version"]

    async def publish(self, entry_id: str, version: int) -> None:
        """Publish an entry at the given version."""
        await self._client._put(
            self._client.env_path("entries", entry_id, "published"),
            context="publish entry",
            version=version,
        )
