"""Redis access for auth sessions and one-time magic-link tokens."""

import json

import redis.asyncio as redis

from campaign_keeper.config import settings

SESSION_PREFIX = "auth:session:"
MAGIC_LINK_PREFIX = "auth:magic:"

_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Get or create the Redis client singleton (lazy init)."""
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def get_redis() -> redis.Redis:
    """FastAPI dependency that returns the Redis client."""
    return get_redis_client()


async def put_json(client: redis.Redis, key: str, value: dict, ttl: int) -> None:
    await client.set(key, json.dumps(value), ex=ttl)


async def get_json(client: redis.Redis, key: str) -> dict | None:
    raw = await client.get(key)
    if raw:
        return json.loads(raw)
    return None


async def pop_json(client: redis.Redis, key: str) -> dict | None:
    """Read and delete in one step, so a key can only be consumed once."""
    raw = await client.getdel(key)
    if raw:
        return json.loads(raw)
    return None
