"""Pydantic models for reset configuration (db-reset.toml)."""

from urllib.parse import quote

from pydantic import BaseModel, Field

from db_reset.adapters import get_adapter
from db_reset.options import ResetOptions


class DatabaseProfile(BaseModel):
    """Database connection profile from db-reset.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    adapter: str = "postgres"


class ResetSettings(BaseModel):
    """The ``[reset]`` table: filters and side steps shared by all profiles."""

    tables_to_ignore: list[str] = Field(default_factory=list)
    tables_to_include: list[str] = Field(default_factory=list)
    schemas_to_include: list[str] = Field(default_factory=list)
    schemas_to_exclude: list[str] = Field(default_factory=list)
    with_reseed: bool = False
    check_temporal_tables: bool = False
    command_timeout: int | None = None

    def to_options(self, profile: DatabaseProfile) -> ResetOptions:
        """Build ``ResetOptions`` bound to the profile's adapter.

        Raises:
            ConfigurationError: If the profile names an unknown adapter.
        """
        return ResetOptions(
            tables_to_ignore=self.tables_to_ignore,
            tables_to_include=self.tables_to_include,
            schemas_to_include=self.schemas_to_include,
            schemas_to_exclude=self.schemas_to_exclude,
            with_reseed=self.with_reseed,
            check_temporal_tables=self.check_temporal_tables,
            command_timeout=self.command_timeout,
            adapter=get_adapter(profile.adapter),
        )


class ResetConfig(BaseModel):
    """Complete configuration from db-reset.toml."""

    profiles: dict[str, DatabaseProfile]
    reset: ResetSettings = Field(default_factory=ResetSettings)


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url
