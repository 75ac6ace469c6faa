"""Per-row asset replacement pipeline.

Each row moves through a fixed sequence of stages::

    FETCH_ENTRY -> FETCH_ASSET -> DOWNLOAD -> CREATE_NEW_ASSET -> UNPUBLISH_OLD
      -> ARCHIVE_OLD -> PATCH_ENTRY_LINK -> PUBLISH_ENTRY -> VALIDATE

The new asset is created and published before the old one is touched, so a
row that fails midway never leaves its entry pointing at a retired asset.
Any error ends the row at the failing stage; the run moves on to the next row.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, TYPE_CHECKING

from .errors import AssetReplacerError, ValidationMismatchError
from .ledger import InputRow, LedgerPair
from .models import Asset, RowOutcome, RunSummary
from .transfer import AssetDownloader, collision_suffix, strip_collision_suffix

if TYPE_CHECKING:
    from .api.client import CMAClient

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stages. The value is the prefix used in failure messages."""

    FETCH_ENTRY = "fetch entry"
    FETCH_ASSET = "fetch asset"
    DOWNLOAD = "download file"
    CREATE_NEW_ASSET = "create new asset"
    UNPUBLISH_OLD = "unpublish old asset"
    ARCHIVE_OLD = "archive old asset"
    PATCH_ENTRY_LINK = "patch entry"
    PUBLISH_ENTRY = "publish entry"
    VALIDATE = "validate entry"

    @property
    def label(self) -> str:
        return self.value


class ReplacementPipeline:
    """Drives rows through the replacement stages and records outcomes.

    Usage:
        async with CMAClient(config) as cma, AssetDownloader("downloaded") as dl:
            with LedgerPair(success, failure) as ledgers:
                summary = await ReplacementPipeline(cma, dl, ledgers).run(rows)
    """

    def __init__(
        self,
        cma: "CMAClient",
        downloader: AssetDownloader,
        ledgers: LedgerPair | None = None,
    ):
        self.cma = cma
        self.downloader = downloader
        self.ledgers = ledgers

    async def process_row(self, row_number: int, entry_id: str, asset_id: str) -> RowOutcome:
        """Run one (entry, asset) pair to a terminal state."""
        outcome = RowOutcome(entry_id=entry_id, old_asset_id=asset_id)
        stage = Stage.FETCH_ENTRY
        try:
            entry = await self.cma.entries.get(entry_id)

            stage = Stage.FETCH_ASSET
            asset = await self.cma.assets.get(asset_id)

            stage = Stage.DOWNLOAD
            saved_path = await self.downloader.download(asset)

            stage = Stage.CREATE_NEW_ASSET
            outcome.new_asset_id = await self._create_replacement(asset, saved_path)

            stage = Stage.UNPUBLISH_OLD
            await self.cma.assets.unpublish(asset.id, asset.version)

            # Archive re-reads the asset, so the post-unpublish version is used.
            stage = Stage.ARCHIVE_OLD
            await self.cma.assets.archive(asset.id)

            stage = Stage.PATCH_ENTRY_LINK
            version = await self.cma.entries.patch_asset_link(
                entry.id, outcome.new_asset_id, entry.version
            )

            stage = Stage.PUBLISH_ENTRY
            await self.cma.entries.publish(entry.id, version)

            stage = Stage.VALIDATE
            published = await self.cma.entries.get(entry.id)
            if published.asset_id != outcome.new_asset_id:
                raise ValidationMismatchError(outcome.new_asset_id, published.asset_id)
        except (AssetReplacerError, OSError) as e:
            outcome.stage = stage.name
            outcome.error = f"{stage.label}: {e}"
            logger.warning(
                "row %d: %s failed for entry %s / asset %s: %s",
                row_number,
                stage.label,
                entry_id,
                asset_id,
                e,
            )
            return outcome

        logger.info(
            "row %d: entry %s now links asset %s (was %s)",
            row_number,
            entry_id,
            outcome.new_asset_id,
            asset_id,
        )
        return outcome

    async def _create_replacement(self, asset: Asset, saved_path: Path) -> str:
        suffix = collision_suffix(asset.created_at)
        file_name = strip_collision_suffix(asset.file_name or saved_path.name, suffix)
        # A half-created asset (ProcessingTimeoutError, AssetCreationError) is
        # never recorded as the row's new asset; its id is in the error text.
        return await self.cma.assets.create_and_publish(
            saved_path,
            file_name=file_name,
            content_type=asset.content_type,
            title=asset.title,
            description=asset.description,
        )

    def record(self, outcome: RowOutcome) -> None:
        """Append the outcome to exactly one ledger."""
        if self.ledgers is None:
            return
        if outcome.succeeded:
            self.ledgers.success.append(outcome.success_row())
        else:
            self.ledgers.failure.append(outcome.failure_row())

    async def run(self, rows: Iterable[InputRow], summary: RunSummary | None = None) -> RunSummary:
        """Process rows strictly one at a time, never aborting on a row error."""
        summary = summary or RunSummary()
        for row in rows:
            entry_id, asset_id = row[0], row[1]
            outcome = await self.process_row(row.number, entry_id, asset_id)
            self.record(outcome)
            summary.processed += 1
            if outcome.succeeded:
                summary.succeeded += 1
            else:
                summary.failed += 1
                summary.errors.append(f"row {row.number}: {outcome.error}")
        return summary
