import json
import logging
from redis import Redis, RedisError

from .config import settings

logger = logging.getLogger("tour_booking")

ALL_PACKAGES_KEY = "all_packages"
FEATURED_PACKAGES_KEY = "featured_packages"


def package_key(package_id: int) -> str:
    return f"package_{package_id}"


def get_cached(redis_client: Redis, key: str):
    try:
        cached = redis_client.get(key)
    except RedisError as e:
        logger.warning(f"Redis read for {key} failed: {e}")
        return None
    return json.loads(cached) if cached else None


def set_cached(redis_client: Redis, key: str, value):
    try:
        redis_client.set(key, json.dumps(value, default=str), ex=settings.CACHE_TTL_SECONDS)
    except RedisError as e:
        logger.warning(f"Redis write for {key} failed: {e}")


def invalidate_package(redis_client: Redis, package_id: int):
    """Drops every cached view that shows this package's slots or visibility."""
    try:
        redis_client.delete(package_key(package_id), ALL_PACKAGES_KEY, FEATURED_PACKAGES_KEY)
        logger.info(f"Invalidated Redis cache for package {package_id}.")
    except RedisError as e:
        logger.error(f"Failed to invalidate Redis cache for package {package_id}: {e}")
