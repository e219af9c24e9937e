"""Application configuration."""

from .settings import FullFeedSettings, get_settings, load_settings

__all__ = ["FullFeedSettings", "get_settings", "load_settings"]
