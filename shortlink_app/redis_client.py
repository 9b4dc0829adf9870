"""
Shared Redis client for the alias store, counter store and event log.

The client is created lazily and reused for the whole process;
close_redis() is called from the application lifespan on shutdown.
"""

from typing import Optional

import redis.asyncio as redis

from shortlink_app.config import settings

redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.redis_socket_timeout,
            socket_timeout=settings.redis_socket_timeout,
        )
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
