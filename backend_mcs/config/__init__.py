"""Configuration: .env loading and typed settings."""

from backend_mcs.config.settings import PlatformConfig, Settings, get_settings

__all__ = ["PlatformConfig", "Settings", "get_settings"]
