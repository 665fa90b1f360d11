from __future__ import annotations

import redis
from h5p_server.core.config import settings
from redis import Redis


def get_redis_connection() -> Redis:
    """Return a Redis connection for RQ (install jobs + job metadata)."""
    return redis.from_url(settings.redis_url)
