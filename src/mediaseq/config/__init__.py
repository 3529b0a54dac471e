"""Configuration management."""

from mediaseq.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
