"""Asset Replacer - swap binary assets behind CMS entries via the management API."""

__version__ = "0.1.0"
