"""Configuration models describing filecatalog settings."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogBaseModel(BaseModel):
    """Shared configuration for filecatalog Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class DatabaseSettings(CatalogBaseModel):
    """Connection settings for the catalog database.

    Attributes:
        url: SQLAlchemy async connection URL (``postgresql+asyncpg://...`` or
            ``sqlite+aiosqlite:///...``).
        pool_size: Number of pooled connections shared by all crawl sessions
            (SQLite catalogs always use one).
        pool_timeout: Seconds a session waits for a free connection; ``None``
            waits until one is released.
        echo: Whether SQLAlchemy should log every statement.
        create_schema: Whether to create the catalog table before crawling.
    """

    url: Optional[str] = None
    pool_size: int = Field(default=2, ge=1)
    pool_timeout: Optional[float] = Field(default=None, gt=0)
    echo: bool = False
    create_schema: bool = True


class ObjectStoreSettings(CatalogBaseModel):
    """Client settings for S3-compatible object stores.

    Attributes:
        endpoint_url: Optional endpoint override for non-AWS providers.
        region: Optional region override.
        force_path_style: Whether to use path-style bucket addressing.
    """

    endpoint_url: Optional[str] = None
    region: Optional[str] = None
    force_path_style: bool = False


class CrawlSettings(CatalogBaseModel):
    """Batching knobs for crawl sessions.

    Attributes:
        batch_size: Number of entries that closes a batch.
        batch_interval_seconds: Seconds after which an open batch is flushed.
    """

    batch_size: int = Field(default=200, ge=1)
    batch_interval_seconds: float = Field(default=1.0, gt=0)


class LoggingSettings(CatalogBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: str = "WARNING"


class CatalogConfig(CatalogBaseModel):
    """Top-level configuration struct for filecatalog.

    Attributes:
        database: Catalog database settings.
        object_store: Object-store client settings.
        crawl: Crawl session settings.
        logging: Logging configuration.
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    object_store: ObjectStoreSettings = Field(default_factory=ObjectStoreSettings)
    crawl: CrawlSettings = Field(default_factory=CrawlSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "CatalogBaseModel",
    "DatabaseSettings",
    "ObjectStoreSettings",
    "CrawlSettings",
    "LoggingSettings",
    "CatalogConfig",
]
