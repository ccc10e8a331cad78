# storybook/lib/story_store.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, List, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from storybook.config import config
from storybook.errors import StoreConnectionError, StoreWriteError
from storybook.logger import get_logger
from storybook.schemas import StoryDocument

log = get_logger(__name__)

KEY_PREFIX = "story:"


def story_key(story_id: str) -> str:
    return f"{KEY_PREFIX}{story_id}"


class StoryStore:
    """
    Whole-document key/value persistence for stories. There is no field-level
    update: callers read, modify and write back the full document.
    """

    def __init__(self, redis_client: aioredis.Redis):
        self._redis = redis_client

    async def set(self, story_id: str, document: StoryDocument, ttl_seconds: Optional[int] = None) -> None:
        """
        Overwrite the document under `story_id`. With `ttl_seconds=None` the
        current expiry of an existing entry is kept.
        """
        key = story_key(story_id)
        payload = document.model_dump_json(by_alias=True)
        log.info(f"saving {key} ({round(len(payload) / 1024)} KB, ttl={ttl_seconds if ttl_seconds else 'kept'})")
        try:
            if ttl_seconds:
                await self._redis.set(key, payload, ex=ttl_seconds)
            else:
                await self._redis.set(key, payload, keepttl=True)
        except RedisError as e:
            raise StoreWriteError(key, str(e)) from e

    async def get(self, story_id: str) -> Optional[StoryDocument]:
        """The stored document, or None when the id is unknown or expired."""
        key = story_key(story_id)
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            raise StoreConnectionError(str(e)) from e
        if raw is None:
            return None
        try:
            return StoryDocument.model_validate_json(raw)
        except ValidationError:
            log.exception(f"{key} holds a malformed story document")
            return None

    async def story_ids(self) -> List[str]:
        """Ids of every stored story, in no particular order."""
        try:
            return [key[len(KEY_PREFIX):] async for key in self._redis.scan_iter(match=f"{KEY_PREFIX}*")]
        except RedisError as e:
            raise StoreConnectionError(str(e)) from e

    async def ttl(self, story_id: str) -> Optional[int]:
        """Remaining lifetime in seconds; None when the key is missing or never expires."""
        seconds = await self._redis.ttl(story_key(story_id))
        return seconds if seconds and seconds > 0 else None


def _connect(url: str) -> aioredis.Redis:
    return aioredis.from_url(url, decode_responses=True)


@asynccontextmanager
async def open_story_store(
    url: Optional[str] = None,
    *,
    connect: Callable[[str], aioredis.Redis] = _connect,
) -> AsyncIterator[StoryStore]:
    """
    One store connection for the duration of one request. Connects eagerly
    (PING) so a bad URL fails before any work starts; always disconnects.
    """
    url = url or config.redis_url
    if not url:
        raise StoreConnectionError("REDIS_URL not configured")

    client = connect(url)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        await _close(client)
        raise StoreConnectionError(str(e)) from e
    log.debug("story store connected")

    try:
        yield StoryStore(client)
    finally:
        await _close(client)


async def _close(client: aioredis.Redis) -> None:
    try:
        await client.aclose()
        log.debug("story store disconnected")
    except Exception as e:
        log.warning(f"error disconnecting from story store: {e}")
