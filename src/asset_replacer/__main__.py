"""Allow ``python -m asset_replacer``."""

from .cli import app

app()
