"""Asset file transfer: streaming downloads with collision-avoiding names."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from urllib.parse import urlparse

import httpx

from .errors import DownloadError
from .models import Asset

logger = logging.getLogger(__name__)

# Same format on download and on re-upload, or names drift.
SUFFIX_FORMAT = "%Y%m%d_%H%M%S"


def ensure_https(url: str) -> str:
    """Rewrite protocol-relative and ``http://`` URLs to ``https://``."""
    s = (url or "").strip()
    if s.startswith("//"):
        return "https:" + s
    if s.lower().startswith("http://"):
        return "https://" + s[len("http://"):]
    return s


def collision_suffix(created_at: datetime | None) -> str:
    """Timestamp suffix derived from the asset's creation time."""
    if created_at is None:
        return ""
    return created_at.strftime(SUFFIX_FORMAT)


def add_collision_suffix(file_name: str, suffix: str) -> str:
    """``report.pdf`` + ``20240115_100000`` -> ``report_20240115_100000.pdf``."""
    if not suffix:
        return file_name
    stem, ext = os.path.splitext(file_name)
    return f"{stem}_{suffix}{ext}"


def strip_collision_suffix(file_name: str, suffix: str) -> str:
    """Inverse of :func:`add_collision_suffix`; other names pass through."""
    if not suffix:
        return file_name
    stem, ext = os.path.splitext(file_name)
    marker = f"_{suffix}"
    if stem.endswith(marker):
        return stem[: -len(marker)] + ext
    return file_name


def _filename_from_url(url: str) -> str | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    name = Path(parsed.path or "").name
    return name or None


def base_file_name(asset: Asset) -> str:
    """Declared file name, else the URL basename, else the asset id."""
    name = (asset.file_name or "").strip()
    if name:
        return name
    return _filename_from_url(ensure_https(asset.file_url)) or asset.id


class AssetDownloader:
    """Downloads asset binaries to a local directory.

    Uses its own client without the management credentials; file URLs point
    at a public CDN.
    """

    def __init__(
        self,
        dest_dir: str | Path,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 20.0,
    ):
        self.dest_dir = Path(dest_dir)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def __aenter__(self) -> "AssetDownloader":
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def target_path(self, asset: Asset) -> Path:
        name = add_collision_suffix(base_file_name(asset), collision_suffix(asset.created_at))
        return self.dest_dir / name

    async def download(self, asset: Asset) -> Path:
        """Download the asset's file and return the local path.

        Raises:
            DownloadError: empty URL, non-2xx status, network or write failure
        """
        if not asset.file_url.strip():
            raise DownloadError("empty asset file URL")

        url = ensure_https(asset.file_url)
        self.dest_dir.mkdir(parents=True, exist_ok=True)
        dest = self.target_path(asset)

        try:
            async with self.client.stream("GET", url) as resp:
                if resp.status_code < 200 or resp.status_code >= 300:
                    body = (await resp.aread())[:2048].decode("utf-8", errors="replace").strip()
                    raise DownloadError(f"download status {resp.status_code}: {body}")
                with open(dest, "wb") as fh:
                    async for chunk in resp.aiter_bytes():
                        fh.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DownloadError(f"download failed: {e}") from e
        except OSError as e:
            raise DownloadError(f"write {dest}: {e}") from e

        logger.debug("Downloaded %s -> %s", url, dest)
        return dest
