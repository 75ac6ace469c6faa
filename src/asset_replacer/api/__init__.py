"""Content Management API client module.

Usage:
    from asset_replacer.api import CMAClient, CMAConfig

    config = CMAConfig(token="...", space_id="abc123", environment="master")
    async with CMAClient(config) as cma:
        entry = await cma.entries.get("entry_id")
        asset = await cma.assets.get(entry.asset_id)
"""

from .client import CMAClient, CMAConfig
from .entries import EntriesAPI
from .assets import AssetsAPI

__all__ = [
    "CMAClient",
    "CMAConfig",
    "EntriesAPI",
    "AssetsAPI",
]
