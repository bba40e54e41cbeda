"""
Cache helpers for read-heavy JSON endpoints
"""

import functools

from flask import current_app, jsonify

from liga import cache


def make_cache_key(key_prefix, **kwargs):
    """Build a key from the view's URL arguments so it can be rebuilt outside a request"""
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{key_prefix}_{kwargs_str}" if kwargs_str else key_prefix


def cached_route(timeout=300, key_prefix="view"):
    """
    Cache a view that returns a JSON-serializable dict.

    Error responses (tuples or Response objects) pass through uncached.

    Args:
        timeout: Cache timeout in seconds
        key_prefix: Prefix for the cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(**kwargs):
            cache_key = make_cache_key(key_prefix, **kwargs)

            payload = cache.get(cache_key)
            if payload is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return jsonify(payload)

            result = f(**kwargs)
            if not isinstance(result, dict):
                return result

            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")
            return jsonify(result)

        return wrapped

    return decorator


def invalidate_zone_standings(zone_id):
    cache.delete(make_cache_key("zone_standings", zone_id=zone_id))


def invalidate_leaderboard():
    cache.delete(make_cache_key("prode_leaderboard"))


def get_cache_stats():
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
    }
