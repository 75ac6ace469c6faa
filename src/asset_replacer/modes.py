"""Single-call-per-row run modes: list, publish-drafts and archive-status.

They share the row source, the ledgers and the continue-on-error loop with
the replacement pipeline, but each row needs only one or two reads (and at
most one publish).
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable, Sequence, TYPE_CHECKING

from .errors import AssetReplacerError
from .ledger import ASSET_COLUMNS, ENTRY_COLUMNS, InputRow, LedgerPair
from .models import Entry, RunSummary

if TYPE_CHECKING:
    from .api.client import CMAClient

logger = logging.getLogger(__name__)


class ModeHandler:
    """One row in, one ledger row out. ``handle`` raises on failure."""

    name: str = ""
    columns: Sequence[str] = ENTRY_COLUMNS
    success_header: Sequence[str] = ()
    failure_header: Sequence[str] = ("entry_id", "error")
    stage: str = ""

    def __init__(self, cma: "CMAClient"):
        self.cma = cma

    async def handle(self, row: InputRow) -> list[str]:
        raise NotImplementedError

    def failure_row(self, row: InputRow, error: str) -> list[str]:
        return [row[0], error]


class ListHandler(ModeHandler):
    """Report an entry, its linked asset and the asset's file."""

    name = "list"
    success_header = ("entry_id", "content_type_id", "version", "asset_id", "file_name", "file_url")
    stage = "fetch entry"

    async def describe(self, entry: Entry) -> list[str]:
        file_name = file_url = ""
        if entry.asset_id:
            self.stage = "fetch asset"
            asset = await self.cma.assets.get(entry.asset_id)
            file_name, file_url = asset.file_name, asset.file_url
        return [
            entry.id,
            entry.content_type_id,
            str(entry.version),
            entry.asset_id,
            file_name,
            file_url,
        ]

    async def handle(self, row: InputRow) -> list[str]:
        self.stage = "fetch entry"
        entry = await self.cma.entries.get(row[0])
        return await self.describe(entry)

    async def iter_entries(
        self,
        content_type: str | None = None,
        page_size: int = 100,
        max_entries: int | None = None,
    ) -> AsyncIterator[Entry]:
        """Page through every entry (optionally of one content type)."""
        skip = 0
        seen = 0
        while True:
            entries, total = await self.cma.entries.list(
                limit=page_size, skip=skip, content_type=content_type
            )
            if not entries:
                return
            for entry in entries:
                yield entry
                seen += 1
                if max_entries is not None and seen >= max_entries:
                    return
            skip += len(entries)
            if skip >= total:
                return


class PublishDraftsHandler(ModeHandler):
    """Publish entries that are drafts or have unpublished changes."""

    name = "publish-drafts"
    success_header = ("entry_id", "previous_status", "published_version")
    stage = "fetch entry"

    async def handle(self, row: InputRow) -> list[str]:
        self.stage = "fetch entry"
        entry = await self.cma.entries.get(row[0])
        if entry.is_published:
            logger.debug("Entry %s already published at version %s", entry.id, entry.published_version)
            return [entry.id, entry.status, str(entry.published_version)]

        self.stage = "publish entry"
        await self.cma.entries.publish(entry.id, entry.version)
        return [entry.id, entry.status, str(entry.version)]


class ArchiveStatusHandler(ModeHandler):
    """Report whether assets are archived, published or still drafts."""

    name = "archive-status"
    columns = ASSET_COLUMNS
    success_header = ("asset_id", "status", "archived_at")
    failure_header = ("asset_id", "error")
    stage = "fetch asset"

    async def handle(self, row: InputRow) -> list[str]:
        asset = await self.cma.assets.get(row[0])
        archived_at = asset.archived_at.isoformat() if asset.archived_at else ""
        return [asset.id, asset.status, archived_at]


MODE_HANDLERS: dict[str, type[ModeHandler]] = {
    ListHandler.name: ListHandler,
    PublishDraftsHandler.name: PublishDraftsHandler,
    ArchiveStatusHandler.name: ArchiveStatusHandler,
}


async def run_mode(
    handler: ModeHandler,
    rows: Iterable[InputRow],
    ledgers: LedgerPair,
    summary: RunSummary | None = None,
) -> RunSummary:
    """Drive rows through ``handler`` one at a time, continuing on error."""
    summary = summary or RunSummary()
    for row in rows:
        summary.processed += 1
        try:
            values = await handler.handle(row)
        except AssetReplacerError as e:
            error = f"{handler.stage}: {e}"
            logger.warning("row %d: %s %s: %s", row.number, handler.name, row[0], e)
            ledgers.failure.append(handler.failure_row(row, error))
            summary.failed += 1
            summary.errors.append(f"row {row.number}: {error}")
            continue
        ledgers.success.append(values)
        summary.succeeded += 1
    return summary


async def run_listing(
    handler: ListHandler,
    ledgers: LedgerPair,
    content_type: str | None = None,
    max_entries: int | None = None,
    summary: RunSummary | None = None,
) -> RunSummary:
    """List every entry of the environment instead of reading ids from a file."""
    summary = summary or RunSummary()
    async for entry in handler.iter_entries(content_type=content_type, max_entries=max_entries):
        summary.processed += 1
        try:
            values = await handler.describe(entry)
        except AssetReplacerError as e:
            error = f"{handler.stage}: {e}"
            logger.warning("list %s: %s", entry.id, e)
            ledgers.failure.append([entry.id, error])
            summary.failed += 1
            summary.errors.append(f"entry {entry.id}: {error}")
            continue
        ledgers.success.append(values)
        summary.succeeded += 1
    return summary
