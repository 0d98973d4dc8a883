"""
Catalog Cache Decorator

Wraps a CatalogAssembler with a Redis read-through cache. The engine
itself never caches; callers opt in by passing a ``version`` that they
bump whenever the underlying catalog data changes.

Usage:
    from redis.asyncio import Redis

    cached = CachedCatalogAssembler(assembler, Redis.from_url(url), ttl_seconds=60)
    catalog = await cached.get_restaurant_catalog("r-1", version="42")

Key format:
    catalog:{restaurant_id}:{branch_id or '*'}:{search}:{category_id}:{version}

Redis failures are logged and bypassed; they never fail a read.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from redis.exceptions import RedisError

from app.services.catalog.assembler import CatalogAssembler

logger = logging.getLogger(__name__)


def cache_key(
    restaurant_id: str,
    branch_id: Optional[str],
    search: Optional[str],
    category_id: Optional[str],
    version: str,
) -> str:
    return (
        f"catalog:{restaurant_id}:{branch_id or '*'}:"
        f"{search or ''}:{category_id or ''}:{version}"
    )


class CachedCatalogAssembler:
    """
    Read-through cache in front of a CatalogAssembler.

    Attributes:
        assembler: The wrapped assembler
        client: redis.asyncio client (or anything with async get/set)
        ttl_seconds: Lifetime of a cached document
    """

    def __init__(self, assembler: CatalogAssembler, client: Any, ttl_seconds: int = 60):
        self.assembler = assembler
        self.client = client
        self.ttl_seconds = ttl_seconds

    @property
    def source(self):
        return self.assembler.source

    async def cache_status(self) -> str:
        """Ping Redis; failures are reported, not raised."""
        try:
            await self.client.ping()
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return f"unhealthy: {str(e)}"
        return "healthy"

    async def _read(self, key: str) -> Optional[dict[str, Any]]:
        try:
            cached = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Catalog cache read failed for {key}: {e}")
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError as e:
            logger.warning(f"Discarding undecodable catalog cache entry {key}: {e}")
            return None

    async def _write(self, key: str, catalog: dict[str, Any]) -> None:
        try:
            await self.client.set(key, json.dumps(catalog, default=str), ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(f"Catalog cache write failed for {key}: {e}")

    async def get_restaurant_catalog(
        self,
        restaurant_id: Optional[str],
        branch_id: Optional[str] = None,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
        version: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Same contract as CatalogAssembler.get_restaurant_catalog.

        The cache is consulted only when ``version`` is given and no
        ``as_of`` override is requested. ``None`` results are not stored.
        """
        if not version or as_of is not None or not restaurant_id:
            return await self.assembler.get_restaurant_catalog(
                restaurant_id,
                branch_id=branch_id,
                search=search,
                category_id=category_id,
                as_of=as_of,
            )

        key = cache_key(restaurant_id, branch_id, search, category_id, version)
        cached = await self._read(key)
        if cached is not None:
            logger.debug(f"Catalog cache hit: {key}")
            return cached

        catalog = await self.assembler.get_restaurant_catalog(
            restaurant_id,
            branch_id=branch_id,
            search=search,
            category_id=category_id,
        )
        if catalog is not None:
            await self._write(key, catalog)
        return catalog

    async def list_restaurant_catalog(self, **kwargs) -> dict[str, Any]:
        """Listings are never cached."""
        return await self.assembler.list_restaurant_catalog(**kwargs)
