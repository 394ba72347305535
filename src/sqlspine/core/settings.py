"""Environment-driven defaults for sqlspine.

``SqlSpineSettings`` supplies the values that neither the connection URL
nor the keyword overrides given to :func:`sqlspine.connect` provide:
pool size, pool timeout, threading mode, identifier quoting and SQL
logging.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup
    - **Environment-driven:** ``SQLSPINE_*`` variables and ``.env`` files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> import os
    >>> os.environ["SQLSPINE_MAX_CONNECTIONS"] = "8"
    >>> get_settings.cache_clear()
    >>> get_settings().max_connections
    8

Tags:
    settings, configuration, pydantic, environment, sqlspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SqlSpineSettings(BaseSettings):
    """Process-wide defaults.

    Fields
    ──────
    database_url      : Default URL used by ``connect()`` without arguments
    max_connections   : Upper bound of the threaded pool
    pool_timeout      : Seconds ``acquire`` waits before ``PoolTimeoutError``
    single_threaded   : Use the single-connection pool
    quote_identifiers : Quote table/column names in generated SQL
    log_sql           : Log every statement at DEBUG
    log_level         : structlog level used by ``configure_logging``
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite://"
    max_connections: int = Field(default=4, ge=1)
    pool_timeout: float = Field(default=5.0, gt=0)
    single_threaded: bool = False
    quote_identifiers: bool = False
    log_sql: bool = False
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> SqlSpineSettings:
    """Return the cached settings instance."""
    return SqlSpineSettings()


__all__ = ["SqlSpineSettings", "get_settings"]
