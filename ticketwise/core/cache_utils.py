"""
Caching utilities for expensive list and report queries.

Keys are grouped into namespaces. Each namespace carries a version number
stored in the cache itself, so invalidating a namespace is a single
increment that works on every backend. When Redis is the backend the old
keys are also removed with a SCAN pattern delete.
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
CUSTOMER_LIST_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes
INVENTORY_DASHBOARD_CACHE_TTL = 180  # 3 minutes

CUSTOMERS_NAMESPACE = 'customers_list'
REPORTS_NAMESPACE = 'reports'
INVENTORY_DASHBOARD_NAMESPACE = 'inventory_dashboard'

NAMESPACE_VERSION_TTL = None  # never expire version counters


def _version_key(namespace):
    return f"ns_version:{namespace}"


def get_namespace_version(namespace):
    version = cache.get(_version_key(namespace))
    if version is None:
        version = 1
        cache.add(_version_key(namespace), version, NAMESPACE_VERSION_TTL)
    return version


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    version = get_namespace_version(prefix)
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{version}:{key_hash}"


def get_cached(prefix, *args, **kwargs):
    """Returns tuple: (cached_data, cache_key)"""
    cache_key = make_cache_key(prefix, *args, **kwargs)
    return cache.get(cache_key), cache_key


def set_cached(cache_key, data, ttl):
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached: {cache_key}")


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Note: This requires Redis with SCAN command support
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")
    except Exception as e:
        logger.debug(f"Pattern invalidation unavailable for {pattern}: {str(e)}")
        return 0

    try:
        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
        return len(keys)
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")
        return 0


def invalidate_namespace(namespace):
    """Bump the namespace version and drop stale keys where possible"""
    version_key = _version_key(namespace)
    try:
        cache.incr(version_key)
    except ValueError:
        # Counter missing or evicted
        cache.set(version_key, 2, NAMESPACE_VERSION_TTL)
    invalidate_cache_pattern(f"{namespace}:v")
    logger.info(f"Invalidated cache namespace: {namespace}")
