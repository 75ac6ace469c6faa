"""Exception hierarchy for asset replacement runs."""

from __future__ import annotations


class AssetReplacerError(Exception):
    """Base exception for asset replacer errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ConfigError(AssetReplacerError):
    """Pre-flight configuration problem. Aborts the whole run."""

    pass


class TransportError(AssetReplacerError):
    """Connection, timeout or TLS failure talking to the backend."""

    pass


class RemoteError(AssetReplacerError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "", context: str = ""):
        self.status_code = status_code
        self.body = body
        prefix = f"{context} failed with status" if context else "unexpected status"
        message = f"{prefix} {status_code}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)


class DecodeError(AssetReplacerError):
    """Response body was not the JSON shape we expected."""

    pass


class ProcessingTimeoutError(AssetReplacerError):
    """Uploaded binary never finished processing within the poll cap."""

    def __init__(self, asset_id: str, attempts: int):
        self.asset_id = asset_id
        self.attempts = attempts
        super().__init__(
            f"asset {asset_id} processing did not complete after {attempts} attempts: file URL missing"
        )


class AssetCreationError(AssetReplacerError):
    """A step after asset creation failed; the new asset id is already known."""

    def __init__(self, asset_id: str, cause: Exception):
        self.asset_id = asset_id
        self.cause = cause
        super().__init__(f"asset {asset_id}: {cause}")


class ValidationMismatchError(AssetReplacerError):
    """Published entry does not link the asset we just created."""

    def __init__(self, expected: str, found: str):
        self.expected = expected
        self.found = found
        super().__init__(f"expected asset {expected} but found {found or '<none>'}")


class DownloadError(AssetReplacerError):
    pass


class InputRowError(AssetReplacerError):
    """Input row is unusable and is skipped without a ledger entry."""

    def __init__(self, row_number: int, reason: str):
        self.row_number = row_number
        self.reason = reason
        super().__init__(f"row {row_number}: {reason}")
