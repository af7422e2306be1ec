"""
Cache utilities for Retenza.

Provides Redis-backed caching with graceful fallback to simple in-memory caching.
Uses Flask-Caching for integration with Flask app.

Usage:
    from retenza.utils.cache import cache

    @cache.memoize(timeout=300)  # 5 minute cache
    def get_expensive_data(param):
        ...

    cache.delete(SHOP_DIRECTORY_KEY)

Environment Variables:
    REDIS_URL: Redis connection URL (e.g., redis://localhost:6379/0)
              Falls back to simple cache if not set or unavailable.
"""
import os
import logging
from flask_caching import Cache

logger = logging.getLogger(__name__)

# Global cache instance - initialized in init_cache()
cache = Cache()

# Approved shop directory shown to customers
SHOP_DIRECTORY_KEY = 'retenza:shop_directory'
SHOP_DIRECTORY_TIMEOUT = 300


def init_cache(app):
    """
    Initialize Flask-Caching with Redis or fallback to simple cache.

    Args:
        app: Flask application instance

    Returns:
        bool: True if Redis connected, False if using fallback
    """
    if app.config.get('TESTING'):
        app.config['CACHE_TYPE'] = app.config.get('CACHE_TYPE', 'NullCache')
        cache.init_app(app)
        return False

    redis_url = os.getenv('REDIS_URL')

    if redis_url:
        try:
            import redis
            r = redis.from_url(redis_url, socket_connect_timeout=2)
            r.ping()

            app.config['CACHE_TYPE'] = 'RedisCache'
            app.config['CACHE_REDIS_URL'] = redis_url
            app.config['CACHE_DEFAULT_TIMEOUT'] = 300
            app.config['CACHE_KEY_PREFIX'] = 'retenza:'

            cache.init_app(app)
            logger.info('[Retenza] Redis cache connected: %s', redis_url.split('@')[-1])
            return True

        except Exception as e:
            logger.warning('[Retenza] Redis unavailable (%s), using simple cache', str(e))

    # Fallback to simple in-memory cache
    app.config['CACHE_TYPE'] = 'SimpleCache'
    app.config['CACHE_DEFAULT_TIMEOUT'] = 300

    cache.init_app(app)
    logger.info('[Retenza] Using simple in-memory cache (no Redis)')
    return False


def invalidate_shop_directory():
    """Drop the cached shop directory after a business profile or approval change."""
    try:
        cache.delete(SHOP_DIRECTORY_KEY)
    except Exception as e:
        logger.warning('Cache invalidation failed: %s', e)
