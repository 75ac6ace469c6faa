"""Shared test fixtures for the asset replacer test suite."""

import pytest
from unittest.mock import AsyncMock, MagicMock

# Sample IDs used across tests
SAMPLE_SPACE_ID = "space_test123"
SAMPLE_ENVIRONMENT = "testing_env"
SAMPLE_TOKEN = "CFPAT-test_token_abc123"
SAMPLE_ENTRY_ID = "E1"
SAMPLE_ASSET_ID = "A1"
SAMPLE_NEW_ASSET_ID = "N1"
SAMPLE_UPLOAD_ID = "upload_xyz789"

CMA_URL = "https://api.contentful.com"
UPLOAD_URL = "https://upload.contentful.com"
ENV_URL = f"{CMA_URL}/spaces/{SAMPLE_SPACE_ID}/environments/{SAMPLE_ENVIRONMENT}"
FILE_URL = "//assets.ctfassets.net/space_test123/abc/report.pdf"


# ============================================================================
# Mock Response Data
# ============================================================================

MOCK_ENTRY = {
    "sys": {
        "id": SAMPLE_ENTRY_ID,
        "type": "Entry",
        "version": 5,
        "publishedVersion": 4,
        "contentType": {"sys": {"type": "Link", "linkType": "ContentType", "id": "document"}},
        "fieldStatus": {"*": {"en-US": "published"}},
    },
    "fields": {
        "title": {"en-US": "Quarterly report"},
        "downloadableFile": {
            "en-US": {"sys": {"type": "Link", "linkType": "Asset", "id": SAMPLE_ASSET_ID}},
        },
    },
}

MOCK_ASSET = {
    "sys": {
        "id": SAMPLE_ASSET_ID,
        "type": "Asset",
        "version": 3,
        "publishedVersion": 2,
        "createdAt": "2024-01-15T10:00:00.000Z",
    },
    "fields": {
        "title": {"en-US": "Quarterly report"},
        "description": {"en-US": "Q4 numbers"},
        "file": {
            "en-US": {
                "url": FILE_URL,
                "fileName": "report.pdf",
                "contentType": "application/pdf",
                "details": {"size": 11},
            }
        },
    },
}


def entry_payload(entry_id=SAMPLE_ENTRY_ID, asset_id=SAMPLE_ASSET_ID, version=5, published_version=4):
    """Entry response linking ``asset_id`` (omitted when empty)."""
    fields = {"title": {"en-US": "Quarterly report"}}
    if asset_id:
        fields["downloadableFile"] = {
            "en-US": {"sys": {"type": "Link", "linkType": "Asset", "id": asset_id}},
        }
    sys = {
        "id": entry_id,
        "type": "Entry",
        "version": version,
        "contentType": {"sys": {"type": "Link", "linkType": "ContentType", "id": "document"}},
    }
    if published_version is not None:
        sys["publishedVersion"] = published_version
    return {"sys": sys, "fields": fields}


def asset_payload(asset_id=SAMPLE_ASSET_ID, version=3, url=FILE_URL, archived_at=None, published_version=2):
    """Asset response; ``url=""`` models a not-yet-processed asset."""
    file_info = {"fileName": "report.pdf", "contentType": "application/pdf"}
    if url:
        file_info["url"] = url
    sys = {"id": asset_id, "type": "Asset", "version": version, "createdAt": "2024-01-15T10:00:00.000Z"}
    if published_version is not None:
        sys["publishedVersion"] = published_version
    if archived_at:
        sys["archivedAt"] = archived_at
    return {
        "sys": sys,
        "fields": {
            "title": {"en-US": "Quarterly report"},
            "description": {"en-US": "Q4 numbers"},
            "file": {"en-US": file_info},
        },
    }


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def cma_config():
    """Create a CMAConfig pointed at the test space with instant polling."""
    from asset_replacer.api.client import CMAConfig
    return CMAConfig(
        token=SAMPLE_TOKEN,
        space_id=SAMPLE_SPACE_ID,
        environment=SAMPLE_ENVIRONMENT,
        poll_interval=0,
        poll_attempts=3,
    )


@pytest.fixture
def sample_entry():
    from asset_replacer.models import Entry
    return Entry.from_api(MOCK_ENTRY, "downloadableFile")


@pytest.fixture
def sample_asset():
    from asset_replacer.models import Asset
    return Asset.from_api(MOCK_ASSET)


@pytest.fixture
def mock_cma(sample_entry, sample_asset):
    """Create a mock CMAClient whose sub-APIs succeed by default."""
    from asset_replacer.models import Entry

    cma = MagicMock()
    relinked = Entry(id=SAMPLE_ENTRY_ID, version=7, asset_id=SAMPLE_NEW_ASSET_ID, published_version=7)

    cma.entries = MagicMock()
    cma.entries.get = AsyncMock(side_effect=[sample_entry, relinked])
    cma.entries.list = AsyncMock(return_value=([], 0))
    cma.entries.patch_asset_link = AsyncMock(return_value=6)
    cma.entries.publish = AsyncMock(return_value=None)

    cma.assets = MagicMock()
    cma.assets.get = AsyncMock(return_value=sample_asset)
    cma.assets.create_and_publish = AsyncMock(return_value=SAMPLE_NEW_ASSET_ID)
    cma.assets.unpublish = AsyncMock(return_value=4)
    cma.assets.archive = AsyncMock(return_value=None)

    return cma


@pytest.fixture
def mock_downloader(tmp_path):
    """Create a mock AssetDownloader that writes a small file."""
    saved = tmp_path / "report_20240115_100000.pdf"
    saved.write_bytes(b"PDF-CONTENT")

    downloader = MagicMock()
    downloader.download = AsyncMock(return_value=saved)
    return downloader


@pytest.fixture
def ledger_pair(tmp_path):
    """Open replace-mode ledgers under tmp_path."""
    from asset_replacer.ledger import (
        REPLACE_FAILURE_HEADER,
        REPLACE_SUCCESS_HEADER,
        Ledger,
        LedgerPair,
    )

    pair = LedgerPair(
        Ledger(tmp_path / "success.csv", REPLACE_SUCCESS_HEADER),
        Ledger(tmp_path / "failed.csv", REPLACE_FAILURE_HEADER),
    )
    with pair:
        yield pair


@pytest.fixture
def write_csv(tmp_path):
    """Factory fixture writing an input CSV and returning its path."""
    def _write(content: str, name: str = "id.csv"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write


# ============================================================================
# CLI Testing Fixtures
# ============================================================================

@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """Credentials via environment, working directory isolated in tmp_path."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("API_TOKEN", SAMPLE_TOKEN)
    monkeypatch.setenv("SPACE_ID", SAMPLE_SPACE_ID)
    for name in ("ENVIRONMENT_ID", "POLL_ATTEMPTS", "POLL_INTERVAL", "HTTP_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def mock_client_factory():
    """Create a factory that produces mock CMAClient context managers."""
    def _create(context):
        mock_instance = MagicMock()
        mock_instance.__aenter__ = AsyncMock(return_value=context)
        mock_instance.__aexit__ = AsyncMock(return_value=None)
        return mock_instance
    return _create
