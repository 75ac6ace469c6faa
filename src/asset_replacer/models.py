"""Typed views over Content Management API payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .errors import DecodeError

DEFAULT_LOCALE = "en-US"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp as returned by the API (``...Z``)."""
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def _sys_block(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise DecodeError("response body is not a JSON object")
    sys = payload.get("sys")
    if not isinstance(sys, dict):
        raise DecodeError("invalid response: missing sys")
    if not isinstance(sys.get("id"), str):
        raise DecodeError("invalid response: missing sys.id")
    return sys


def _version(sys: dict[str, Any]) -> int:
    version = sys.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        raise DecodeError("invalid response: missing sys.version")
    return version


def _localized(fields: dict[str, Any], key: str, locale: str) -> Any:
    value = fields.get(key)
    if isinstance(value, dict):
        return value.get(locale)
    return None


def _localized_str(fields: dict[str, Any], key: str, locale: str) -> str:
    value = _localized(fields, key, locale)
    return value if isinstance(value, str) else ""


def _link_id(value: Any) -> str:
    if not isinstance(value, dict):
        return ""
    sys = value.get("sys")
    if not isinstance(sys, dict):
        return ""
    link_id = sys.get("id")
    return link_id if isinstance(link_id, str) else ""


@dataclass
class Entry:
    """A content entry, reduced to what the replacement run needs."""

    id: str
    version: int
    content_type_id: str = ""
    asset_id: str = ""
    field_status: dict[str, dict[str, str]] = field(default_factory=dict)
    published_version: int | None = None

    @property
    def is_draft(self) -> bool:
        return self.published_version is None

    @property
    def is_changed(self) -> bool:
        # The backend bumps version once on publish, so an unchanged entry
        # sits exactly one version above its published version.
        return self.published_version is not None and self.version > self.published_version + 1

    @property
    def is_published(self) -> bool:
        return not self.is_draft and not self.is_changed

    @property
    def status(self) -> str:
        if self.is_draft:
            return "draft"
        if self.is_changed:
            return "changed"
        return "published"

    @classmethod
    def from_api(
        cls,
        payload: Any,
        field_key: str,
        locale: str = DEFAULT_LOCALE,
    ) -> "Entry":
        """Build an Entry from a raw entry response.

        The linked asset id is read from ``fields.<field_key>.<locale>.sys.id``;
        a missing segment anywhere on that path yields an empty id.
        """
        sys = _sys_block(payload)
        fields = payload.get("fields")
        if not isinstance(fields, dict):
            fields = {}

        content_type = sys.get("contentType")
        content_type_id = _link_id(content_type) if isinstance(content_type, dict) else ""

        field_status = sys.get("fieldStatus")
        if not isinstance(field_status, dict):
            field_status = {}

        published = sys.get("publishedVersion")
        if isinstance(published, bool) or not isinstance(published, int):
            published = None

        return cls(
            id=sys["id"],
            version=_version(sys),
            content_type_id=content_type_id,
            asset_id=_link_id(_localized(fields, field_key, locale)),
            field_status=field_status,
            published_version=published,
        )


@dataclass
class Asset:
    """A managed binary asset."""

    id: str
    version: int
    file_name: str = ""
    file_url: str = ""
    content_type: str = ""
    title: str = ""
    description: str = ""
    created_at: datetime | None = None
    published_version: int | None = None
    archived_at: datetime | None = None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def status(self) -> str:
        if self.is_archived:
            return "archived"
        if self.published_version is not None:
            return "published"
        return "draft"

    @classmethod
    def from_api(cls, payload: Any, locale: str = DEFAULT_LOCALE) -> "Asset":
        """Build an Asset from a raw asset response.

        Per-locale scalars default to empty strings when the locale is absent.
        """
        sys = _sys_block(payload)
        fields = payload.get("fields")
        if not isinstance(fields, dict):
            fields = {}

        file_info = _localized(fields, "file", locale)
        if not isinstance(file_info, dict):
            file_info = {}

        def _file_str(key: str) -> str:
            value = file_info.get(key)
            return value if isinstance(value, str) else ""

        published = sys.get("publishedVersion")
        if isinstance(published, bool) or not isinstance(published, int):
            published = None

        return cls(
            id=sys["id"],
            version=_version(sys),
            file_name=_file_str("fileName"),
            file_url=_file_str("url"),
            content_type=_file_str("contentType"),
            title=_localized_str(fields, "title", locale),
            description=_localized_str(fields, "description", locale),
            created_at=parse_timestamp(sys.get("createdAt")),
            published_version=published,
            archived_at=parse_timestamp(sys.get("archivedAt")),
        )


@dataclass
class RowOutcome:
    """Terminal result of one input row."""

    entry_id: str
    old_asset_id: str
    new_asset_id: str = ""
    error: str = ""
    stage: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.error

    def success_row(self) -> list[str]:
        return [self.entry_id, self.old_asset_id, self.new_asset_id]

    def failure_row(self) -> list[str]:
        return [self.entry_id, self.old_asset_id, self.new_asset_id, self.error]


@dataclass
class RunSummary:
    """Counters reported at the end of a run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
