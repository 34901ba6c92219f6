"""Application settings."""

from rentledger.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
