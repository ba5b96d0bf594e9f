"""Application settings."""

from thinktank.settings.app import AppSettings, get_settings


__all__ = ["AppSettings", "get_settings"]
