"""Database configuration — reads connection parameters from environment.

Supports two modes:
1. A single ``DATABASE_URL`` env var (takes precedence).
2. Individual ``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD``,
   ``PG_DATABASE`` env vars (convenient for docker-compose).

The async SQLAlchemy engine always runs on the asyncpg driver, so a plain
``postgresql://`` URL is rewritten to ``postgresql+asyncpg://``.
"""

import os


def _build_url_from_parts() -> str:
    """Construct a PostgreSQL connection string from individual env vars."""
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "survey")
    password = os.getenv("PG_PASSWORD", "survey")
    database = os.getenv("PG_DATABASE", "survey")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def get_async_url() -> str:
    """Return an asyncpg connection URL for the async SQLAlchemy engine."""
    url = os.getenv("DATABASE_URL") or _build_url_from_parts()
    # Ensure the asyncpg driver prefix is present
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def get_pool_size() -> int:
    return int(os.getenv("PG_POOL_SIZE", "5"))


def get_max_overflow() -> int:
    return int(os.getenv("PG_MAX_OVERFLOW", "10"))
