"""Run configuration via pydantic-settings.

Values come from (highest first) CLI flags, environment variables, and a
``.env`` file in the working directory.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

from .api.client import CMA_BASE_URL, UPLOAD_BASE_URL, CMAConfig
from .errors import ConfigError

DEFAULT_LEDGERS = {
    "replace": ("success.csv", "failed.csv"),
    "list": ("list_success.csv", "list_failed.csv"),
    "publish-drafts": ("publish_success.csv", "publish_failed.csv"),
    "archive-status": ("archive_status.csv", "archive_status_failed.csv"),
}


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "ignore"}

    api_token: str = ""
    space_id: str = ""
    environment_id: str = "testing_env"
    auth_header: str = "Authorization"
    auth_scheme: str = "Bearer"
    http_timeout: float = 20.0
    locale: str = "en-US"
    reference_field: str = "downloadableFile"
    download_dir: Path = Path("downloaded")

    # Asset processing poll: fixed interval, bounded attempts.
    poll_interval: float = 1.0
    poll_attempts: int = 60

    api_base_url: str = CMA_BASE_URL
    upload_base_url: str = UPLOAD_BASE_URL

    def validate_credentials(self) -> None:
        """Raise ConfigError when the run cannot authenticate."""
        if not self.api_token.strip():
            raise ConfigError("missing token: provide --token or set API_TOKEN env var")
        if not self.space_id.strip():
            raise ConfigError("missing --space-id argument or SPACE_ID environment variable")
        if self.poll_attempts < 1:
            raise ConfigError("POLL_ATTEMPTS must be at least 1")

    def to_client_config(self) -> CMAConfig:
        self.validate_credentials()
        return CMAConfig(
            token=self.api_token.strip(),
            space_id=self.space_id.strip(),
            environment=self.environment_id,
            auth_header=self.auth_header,
            auth_scheme=self.auth_scheme,
            timeout=self.http_timeout,
            locale=self.locale,
            reference_field=self.reference_field,
            poll_interval=self.poll_interval,
            poll_attempts=self.poll_attempts,
            base_url=self.api_base_url.rstrip("/"),
            upload_url=self.upload_base_url.rstrip("/"),
        )


def load_settings(**overrides) -> Settings:
    """Build settings, letting non-None overrides (CLI flags) win."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
