import json
import logging

from django.core.cache import cache

logger = logging.getLogger(__name__)


def build_cache_key(namespace, **params):
    """Deterministic key: namespace followed by the sorted request parameters."""
    parts = [namespace]
    for name in sorted(params):
        parts.append(f"{name}={params[name]}")
    return ":".join(parts)


def get_or_fetch(key, ttl_seconds, fetch_fn):
    """
    Return the cached JSON value for ``key`` or call ``fetch_fn`` and cache its result.

    The cache is an accelerator only: any backend error on read or write is
    logged and the request falls through to ``fetch_fn``. Errors raised by
    ``fetch_fn`` itself propagate to the caller untouched.
    """
    try:
        cached = cache.get(key)
    except Exception:  # backend-specific (redis, memcached, ...) connection errors
        logger.warning("Cache read failed for key %s; fetching directly", key, exc_info=True)
        return fetch_fn()

    if cached is not None:
        return json.loads(cached)

    value = fetch_fn()
    try:
        cache.set(key, json.dumps(value), timeout=ttl_seconds)
    except Exception:  # backend-specific (redis, memcached, ...) connection errors
        logger.warning("Cache write failed for key %s", key, exc_info=True)
    return value
