from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from bloglab.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Counters live in Redis outside of tests; an unreachable Redis falls back to memory
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    key_prefix=f"{settings.CACHE_KEY_PREFIX}:ratelimit",
    in_memory_fallback_enabled=True
)

def write_limit() -> str:
    """Limit applied to every write endpoint, read from the current settings"""
    return f"{get_settings().RATE_LIMIT_PER_MINUTE}/minute"

def rate_limit_disabled() -> bool:
    return get_settings().RATE_LIMIT_PER_MINUTE <= 0

def limit_writes(func):
    """Decorator for write endpoints; the endpoint must accept ``request``"""
    return limiter.limit(write_limit, exempt_when=rate_limit_disabled)(func)
