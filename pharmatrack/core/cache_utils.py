"""
Per-pharmacy cache keys for inventory-derived data

Every key embeds the pharmacy's cache generation. Saving or deleting a
batch bumps the generation, so stale grids and dashboards simply stop
being read and age out on their TTL. Works the same on Redis and locmem.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

MEDICATION_GROUPS_CACHE_TTL = 60
DASHBOARD_METRICS_CACHE_TTL = 300
MASTER_LIBRARY_CACHE_TTL = 600

VERSION_KEY = 'pharmacy_cache_version:{}'


def make_cache_key(prefix, *args, **kwargs):
    """Stable key for the arguments; long argument lists are hashed"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    return f"{prefix}:{hashlib.md5(key_data.encode()).hexdigest()}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Cache a function's result under a key built from its arguments.
    None results are not cached.

    Usage:
        @cached_query(cache_ttl=600, key_prefix="master_library_name")
        def search(name): ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)
            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            if result is not None:
                cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def pharmacy_cache_version(pharmacy_id):
    """Current cache generation for a pharmacy"""
    return cache.get(VERSION_KEY.format(pharmacy_id), 1)


def pharmacy_cache_key(prefix, pharmacy_id, *args, **kwargs):
    """Key scoped to the pharmacy and its current generation"""
    return make_cache_key(prefix, pharmacy_id, pharmacy_cache_version(pharmacy_id), *args, **kwargs)


def invalidate_pharmacy_cache(pharmacy_id):
    """Bump the pharmacy's generation so every derived key misses"""
    version_key = VERSION_KEY.format(pharmacy_id)
    try:
        cache.incr(version_key)
    except ValueError:
        # never bumped yet; readers were on generation 1
        cache.set(version_key, 2, None)
    logger.debug(f"Invalidated cache for pharmacy {pharmacy_id}")
