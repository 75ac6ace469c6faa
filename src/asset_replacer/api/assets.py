"""Assets API - upload, create, process, publish and retire assets."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, TYPE_CHECKING

from ..errors import AssetCreationError, AssetReplacerError, DecodeError, ProcessingTimeoutError
from ..models import Asset

if TYPE_CHECKING:
    from .client import CMAClient

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


def _sys_id(data: dict[str, Any], context: str) -> str:
    sys = data.get("sys")
    value = sys.get("id") if isinstance(sys, dict) else None
    if not isinstance(value, str) or not value:
        raise DecodeError(f"{context}: response missing sys.id")
    return value


def _sys_version(data: dict[str, Any]) -> int | None:
    sys = data.get("sys")
    value = sys.get("version") if isinstance(sys, dict) else None
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _file_url(data: dict[str, Any], locale: str) -> str:
    fields = data.get("fields")
    if not isinstance(fields, dict):
        return ""
    file_block = fields.get("file")
    if not isinstance(file_block, dict):
        return ""
    localized = file_block.get(locale)
    if not isinstance(localized, dict):
        return ""
    url = localized.get("url")
    return url.strip() if isinstance(url, str) else ""


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    """Read ``path`` in chunks off the event loop."""
    with open(path, "rb") as fh:
        while True:
            chunk = await asyncio.to_thread(fh.read, UPLOAD_CHUNK_SIZE)
            if not chunk:
                return
            yield chunk


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class AssetsAPI:
    """Assets API for the Content Management API.

    Usage:
        async with CMAClient(config) as cma:
            old = await cma.assets.get("asset_id")
            new_id = await cma.assets.create_and_publish(
                "downloaded/report_20240115_100000.pdf",
                file_name="report.pdf",
                content_type="application/pdf",
                title=old.title,
                description=old.description,
            )
            version = await cma.assets.unpublish(old.id, old.version)
            await cma.assets.archive(old.id)
    """

    def __init__(self, client: "CMAClient"):
        self._client = client

    @property
    def _config(self):
        return self._client.config

    def _path(self, *parts: str) -> str:
        return self._client.env_path("assets", *parts)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, asset_id: str) -> Asset:
        """Fetch an asset with its per-locale file metadata."""
        data = await self._client._get(self._path(asset_id), context="fetch asset")
        return Asset.from_api(data, self._config.locale)

    async def list(self, limit: int = 100, skip: int = 0) -> tuple[list[Asset], int]:
        """List assets in the environment.

        Returns:
            (assets, total)
        """
        data = await self._client._get(
            self._path(),
            context="list assets",
            limit=min(int(limit), 1000),
            skip=int(skip),
        )
        items = data.get("items")
        if not isinstance(items, list):
            raise DecodeError("list assets: missing items")
        assets = [Asset.from_api(item, self._config.locale) for item in items]
        total = data.get("total")
        return assets, total if isinstance(total, int) else len(assets)

    # =========================================================================
    # Creation
    # =========================================================================

    async def upload(self, file_path: str | Path) -> str:
        """Stream a local file to the upload host and return the upload id."""
        path = Path(file_path)
        size = path.stat().st_size
        url = f"{self._config.upload_url}/spaces/{self._config.space_id}/uploads"
        data = await self._client._request(
            "POST",
            url,
            context="upload",
            content=_iter_file(path),
            headers={
                "Content-Type": "application/octet-stream",
                "Content-Length": str(size),
            },
        )
        return _sys_id(data, "upload")

    async def create(
        self,
        upload_id: str,
        file_name: str,
        content_type: str = "",
        title: str = "",
        description: str = "",
    ) -> str:
        """Create an asset record referencing an upload. Returns the new asset id."""
        locale = self._config.locale
        payload = {
            "fields": {
                "title": {locale: title or file_name},
                "description": {locale: description},
                "file": {
                    locale: {
                        "fileName": file_name,
                        "contentType": content_type,
                        "uploadFrom": {
                            "sys": {"type": "Link", "linkType": "Upload", "id": upload_id},
                        },
                    }
                },
            }
        }
        data = await self._client._post(self._path(), payload, context="create asset")
        return _sys_id(data, "create asset")

    async def process(self, asset_id: str) -> None:
        """Ask the backend to process the uploaded binary for the configured locale."""
        await self._client._put(
            self._path(asset_id, "files", self._config.locale, "process"),
            context="process asset",
        )

    async def wait_until_processed(self, asset_id: str) -> int:
        """Poll the asset until its file URL appears.

        Polls at a fixed interval up to the configured attempt cap, keeping
        the version observed on each poll.

        Returns:
            The last observed asset version.

        Raises:
            ProcessingTimeoutError: no file URL within the attempt cap
        """
        attempts = self._config.poll_attempts
        for attempt in range(1, attempts + 1):
            data = await self._client._get(self._path(asset_id), context="get created asset")
            version = _sys_version(data)
            if version is None:
                raise DecodeError("get created asset: response missing sys.version")
            if _file_url(data, self._config.locale):
                logger.debug("Asset %s processed after %d poll(s)", asset_id, attempt)
                return version
            if attempt < attempts:
                await asyncio.sleep(self._config.poll_interval)
        raise ProcessingTimeoutError(asset_id, attempts)

    async def publish(self, asset_id: str, version: int) -> None:
        """Publish an asset at the given version."""
        await self._client._put(
            self._path(asset_id, "published"),
            context="publish asset",
            version=version,
        )

    async def create_and_publish(
        self,
        file_path: str | Path,
        file_name: str,
        content_type: str = "",
        title: str = "",
        description: str = "",
    ) -> str:
        """Upload a local file as a new asset, process it and publish it.

        Raises:
            ProcessingTimeoutError: the binary never finished processing
            AssetCreationError: a step after creation failed (carries the new id)
        """
        if not file_name.strip():
            file_name = Path(file_path).name

        upload_id = await self.upload(file_path)
        asset_id = await self.create(
            upload_id,
            file_name=file_name,
            content_type=content_type,
            title=title,
            description=description,
        )
        logger.debug("Created asset %s from upload %s", asset_id, upload_id)

        try:
            await self.process(asset_id)
            version = await self.wait_until_processed(asset_id)
            await self.publish(asset_id, version)
        except ProcessingTimeoutError:
            raise
        except AssetReplacerError as e:
            raise AssetCreationError(asset_id, e) from e
        return asset_id

    # =========================================================================
    # Retirement
    # =========================================================================

    async def unpublish(self, asset_id: str, version: int) -> int:
        """Unpublish an asset.

        Returns:
            The asset version after unpublishing.
        """
        data = await self._client._delete(
            self._path(asset_id, "published"),
            context="unpublish asset",
            version=version,
        )
        new_version = _sys_version(data)
        if new_version is None:
            new_version = (await self.get(asset_id)).version
        return new_version

    async def archive(self, asset_id: str, version: int | None = None) -> None:
        """Archive an asset by resubmitting its full body with ``sys.archivedAt`` set.

        The current asset is read first; its server-side version is used
        unless ``version`` is given.
        """
        current = await self._client._get(self._path(asset_id), context="get asset")
        sys = current.get("sys")
        if not isinstance(sys, dict):
            raise DecodeError("invalid asset response: missing sys")
        if version is None:
            version = _sys_version(current)
            if version is None:
                raise DecodeError("invalid asset response: missing sys.version")

        payload = dict(current)
        payload["sys"] = {**sys, "archivedAt": _utc_timestamp()}

        await self._client._put(
            self._path(asset_id, "archived"),
            payload,
            context="archive",
            params={"version": version},
            version=version,
        )
