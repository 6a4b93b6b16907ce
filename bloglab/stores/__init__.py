from typing import Tuple

from bloglab.config import Settings
from bloglab.stores.base import (
    AtLeast,
    BackingStore,
    CacheStore,
    Contains,
    EntityKind,
    OneOf,
)
from bloglab.stores.document_store import DocumentStore
from bloglab.stores.redis_store import RedisCacheStore
from bloglab.stores.sql_store import SqlStore


async def create_stores(settings: Settings) -> Tuple[BackingStore, CacheStore]:
    """Build the configured backing store and the Redis cache.

    The caller owns both handles and must close them.
    """
    if settings.STORE_BACKEND == "document":
        store: BackingStore = DocumentStore()
    else:
        store = await SqlStore.from_url(settings.database_url, settings)
    return store, RedisCacheStore.from_url(settings.redis_url)


__all__ = [
    'AtLeast',
    'BackingStore',
    'CacheStore',
    'Contains',
    'DocumentStore',
    'EntityKind',
    'OneOf',
    'RedisCacheStore',
    'SqlStore',
    'create_stores',
]
