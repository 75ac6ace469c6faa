"""CSV row source and append-only outcome ledgers."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Sequence

from .errors import ConfigError, InputRowError

logger = logging.getLogger(__name__)

REPLACE_COLUMNS = ("entry_id", "asset_id")
ENTRY_COLUMNS = ("entry_id",)
ASSET_COLUMNS = ("asset_id",)

REPLACE_SUCCESS_HEADER = ("entry_id", "old_asset_id", "new_asset_id")
REPLACE_FAILURE_HEADER = ("entry_id", "old_asset_id", "new_asset_id", "error")


@dataclass(frozen=True)
class InputRow:
    """One parsed input record. ``number`` is 1-based."""

    number: int
    values: tuple[str, ...]

    def __getitem__(self, index: int) -> str:
        return self.values[index]


def _parse_record(number: int, record: list[str], columns: Sequence[str]) -> InputRow:
    if not record:
        raise InputRowError(number, "empty record")
    if len(record) < len(columns):
        raise InputRowError(
            number,
            f"expected {len(columns)} column(s) ({', '.join(columns)}), got {len(record)}",
        )
    values = tuple(v.strip() for v in record[: len(columns)])
    if any("\ufffd" in v for v in values):
        raise InputRowError(number, "invalid UTF-8 bytes")
    if any(not v for v in values):
        raise InputRowError(number, f"require {' and '.join(columns)}")
    return InputRow(number=number, values=values)


def _is_header(row: InputRow, columns: Sequence[str]) -> bool:
    return row.number == 1 and any(
        value.lower() == column.lower() for value, column in zip(row.values, columns)
    )


def _skip(error: InputRowError, on_skip: Callable[[InputRowError], None] | None) -> None:
    logger.warning("%s", error)
    if on_skip is not None:
        on_skip(error)


def read_rows(
    path: str | Path,
    columns: Sequence[str],
    on_skip: Callable[[InputRowError], None] | None = None,
) -> Iterator[InputRow]:
    """Stream usable rows from a CSV file.

    Unusable rows (too few columns, blank required values, bytes that are
    not valid UTF-8) and a header in position 1 are skipped with a warning;
    they never reach a ledger.
    ``on_skip`` is called for each skipped row.

    Raises:
        ConfigError: the file cannot be opened
    """
    path = Path(path)
    try:
        fh = open(path, newline="", encoding="utf-8-sig", errors="replace")
    except OSError as e:
        raise ConfigError(f"open csv {path}: {e}") from e

    with fh:
        reader = csv.reader(fh, skipinitialspace=True)
        number = 0
        while True:
            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                number += 1
                _skip(InputRowError(number, f"read: {e}"), on_skip)
                continue
            number += 1
            try:
                row = _parse_record(number, record, columns)
            except InputRowError as e:
                _skip(e, on_skip)
                continue
            if _is_header(row, columns):
                _skip(InputRowError(number, "header row skipped"), on_skip)
                continue
            yield row


class Ledger:
    """Append-only CSV ledger. The header is written only to an empty file."""

    def __init__(self, path: str | Path, header: Sequence[str]):
        self.path = Path(path)
        self.header = tuple(header)
        self.rows_written = 0
        self._fh = None
        self._writer = None

    def open(self) -> "Ledger":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "a", newline="", encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"open {self.path}: {e}") from e
        self._writer = csv.writer(self._fh)
        if self._fh.tell() == 0:
            self._writer.writerow(self.header)
            self._fh.flush()
        return self

    def append(self, values: Sequence[str]) -> None:
        if self._writer is None:
            raise RuntimeError(f"Ledger {self.path} is not open")
        self._writer.writerow(["" if v is None else str(v) for v in values])
        self._fh.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None

    def __enter__(self) -> "Ledger":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()


class LedgerPair:
    """Success and failure ledgers of one run, opened and closed together."""

    def __init__(self, success: Ledger, failure: Ledger):
        self.success = success
        self.failure = failure

    def __enter__(self) -> "LedgerPair":
        self.success.open()
        try:
            self.failure.open()
        except ConfigError:
            self.success.close()
            raise
        return self

    def __exit__(self, *args) -> None:
        self.success.close()
        self.failure.close()
