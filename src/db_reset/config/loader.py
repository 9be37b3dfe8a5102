"""TOML configuration loader for reset profiles."""

import os
import tomllib
from pathlib import Path

from db_reset.config.models import DatabaseProfile, ResetConfig, ResetSettings

DEFAULT_CONFIG_FILE = "db-reset.toml"
PROFILE_ENV_VAR = "DB_RESET_PROFILE"


def load_reset_config(config_path: Path | None = None) -> ResetConfig:
    """Load reset configuration from a TOML file.

    Args:
        config_path: Path to the config file (default: ``db-reset.toml``
            in the current working directory).

    Returns:
        ResetConfig with all profiles and the ``[reset]`` settings.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config format is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Reset config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    return ResetConfig(
        profiles=profiles,
        reset=ResetSettings(**data.get("reset", {})),
    )


def get_profile(
    config: ResetConfig, profile_name: str | None = None
) -> tuple[str, DatabaseProfile]:
    """Pick the active profile.

    Priority:
    1. ``profile_name`` argument (``--profile``)
    2. ``DB_RESET_PROFILE`` env var
    3. The only profile, when exactly one is configured

    Raises:
        KeyError: If no profile can be selected or the name is unknown.
    """
    name = profile_name or os.environ.get(PROFILE_ENV_VAR)
    if name is None:
        if len(config.profiles) == 1:
            name = next(iter(config.profiles))
        else:
            raise KeyError(
                f"No profile selected. Pass --profile or set {PROFILE_ENV_VAR}.\n"
                f"Available profiles: {', '.join(config.profiles) or '(none)'}"
            )

    if name not in config.profiles:
        raise KeyError(
            f"Profile '{name}' not found.\n"
            f"Available profiles: {', '.join(config.profiles) or '(none)'}"
        )
    return name, config.profiles[name]
