"""
Redis connection setup using redis-py async client.

The shared client backs the distributed lock that keeps reconciliation
sweeps from overlapping.
"""

import redis.asyncio as aioredis

from hawala.config import settings

redis = aioredis.from_url(
    settings.REDIS_URL,
    decode_responses=True,
    ssl=settings.REDIS_SSL,
)
