"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_reset.config import load_reset_config, get_profile, resolve_url
"""

from db_reset.config.loader import get_profile, load_reset_config
from db_reset.config.models import (
    DatabaseProfile,
    ResetConfig,
    ResetSettings,
    resolve_url,
)

__all__ = [
    "load_reset_config",
    "get_profile",
    "resolve_url",
    "DatabaseProfile",
    "ResetConfig",
    "ResetSettings",
]
