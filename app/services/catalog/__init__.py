"""
Catalog Service Factory

Provides a single entry point for obtaining the catalog source and the
assembler built on top of it. The rest of the application stays agnostic
about where catalog rows come from.

Usage:
    from app.services.catalog import get_catalog_assembler

    assembler = get_catalog_assembler()
    catalog = await assembler.get_restaurant_catalog("r-1", branch_id="b-1")

Environment Switching:
    - ENV_MODE=development → InMemoryCatalogSource (CATALOG_FIXTURE_PATH)
    - ENV_MODE=staging → SqlCatalogSource
    - ENV_MODE=production → SqlCatalogSource
"""

import logging
from functools import lru_cache
from typing import Union

from app.core.config import get_settings
from app.services.catalog.assembler import CatalogAssembler, CatalogSnapshot, assemble_catalog
from app.services.catalog.base import BaseCatalogSource, ProductFilters
from app.services.catalog.cache import CachedCatalogAssembler
from app.services.catalog.memory import InMemoryCatalogSource

logger = logging.getLogger(__name__)

# Type alias for anything that serves catalogs
CatalogService = Union[CatalogAssembler, CachedCatalogAssembler]


@lru_cache()
def get_catalog_source() -> BaseCatalogSource:
    """
    Get the configured catalog source instance.

    Returns:
        BaseCatalogSource: InMemoryCatalogSource in development mode,
        SqlCatalogSource otherwise
    """
    settings = get_settings()

    if settings.is_development:
        if settings.catalog_fixture_path:
            logger.info(
                f"Catalog Source: Using InMemoryCatalogSource "
                f"(fixture {settings.catalog_fixture_path})"
            )
            return InMemoryCatalogSource.from_json_file(settings.catalog_fixture_path)
        logger.info("Catalog Source: Using empty InMemoryCatalogSource (development mode)")
        return InMemoryCatalogSource()

    from app.services.catalog.sql import SqlCatalogSource

    logger.info(f"Catalog Source: Using SqlCatalogSource ({settings.env_mode.value} mode)")
    return SqlCatalogSource()


@lru_cache()
def get_catalog_assembler() -> CatalogService:
    """
    Get the assembler configured from settings.

    Wrapped in CachedCatalogAssembler when CATALOG_CACHE_ENABLED is set.
    """
    settings = get_settings()
    assembler = CatalogAssembler(
        get_catalog_source(),
        default_tax_rate=settings.default_tax_rate,
        restore_empty_option_groups=settings.restore_empty_option_groups,
    )
    if not settings.catalog_cache_enabled:
        return assembler

    from redis.asyncio import Redis

    logger.info(f"Catalog cache enabled (ttl {settings.catalog_cache_ttl_seconds}s)")
    return CachedCatalogAssembler(
        assembler,
        Redis.from_url(settings.redis_url),
        ttl_seconds=settings.catalog_cache_ttl_seconds,
    )


def reset_catalog_source() -> None:
    """
    Clear the cached source and assembler instances.

    The next call to get_catalog_source() re-reads the settings.
    """
    get_catalog_assembler.cache_clear()
    get_catalog_source.cache_clear()
    logger.debug("Catalog source cache cleared")


__all__ = [
    "get_catalog_source",
    "get_catalog_assembler",
    "reset_catalog_source",
    "BaseCatalogSource",
    "CachedCatalogAssembler",
    "CatalogAssembler",
    "CatalogSnapshot",
    "InMemoryCatalogSource",
    "ProductFilters",
    "assemble_catalog",
]
