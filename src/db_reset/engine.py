"""Async engine creation for the connection-string entry points.

Usage:
    from db_reset.engine import create_async_engine_pooled, normalize_url

    engine = create_async_engine_pooled(normalize_url("postgres://u:p@host/db"))
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


def normalize_url(database_url: str) -> str:
    """Map plain PostgreSQL URLs onto the asyncpg driver.

    1. ``postgres://`` -> ``postgresql://`` (Heroku, Railway, Supabase alias)
    2. ``postgresql://`` -> ``postgresql+asyncpg://``

    URLs that already name a driver, or another database, pass through.
    """
    url = database_url
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def create_async_engine_pooled(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Default pool settings:

    - ``pool_size=5``: a reset uses one connection; headroom for callers.
    - ``max_overflow=10``: Allow burst connections.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.

    SQLite URLs get SQLAlchemy's default pool (it rejects pool sizing).

    Args:
        database_url: Connection URL with an async driver
            (``postgresql+asyncpg://``, ``sqlite+aiosqlite://``, ...).
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``; they override the defaults.
    """
    defaults: dict[str, Any] = {"echo": False}
    if not database_url.startswith("sqlite"):
        defaults.update(
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=300,
        )
    if database_url.startswith("postgresql+asyncpg") and "connect_args" not in kwargs:
        defaults["connect_args"] = {"timeout": 5}

    merged = {**defaults, **kwargs}
    return create_async_engine(database_url, **merged)
