from typing import Optional
from redis.asyncio import Redis
from datamodel.parsers.json import json_encoder, json_decoder  # pylint: disable=E0611 # noqa
from ..auth.models import Session
from ..conf import REDIS_SESSION_URL, SESSION_KEY
from .abstract import SessionStore


class RedisSessionStore(SessionStore):
    """Redis-backed session slot.

    Survives process restarts as long as Redis keeps the key; ``ttl`` (seconds)
    optionally expires an idle slot.
    """

    def __init__(
        self,
        redis_url: str = None,
        key: str = SESSION_KEY,
        key_prefix: str = "bizauth",
        ttl: Optional[int] = None,
        redis: Optional[Redis] = None
    ):
        self.redis_url = redis_url or REDIS_SESSION_URL
        self.key = f"{key_prefix}:{key}"
        self.ttl = ttl
        self.redis = redis or Redis.from_url(
            self.redis_url,
            decode_responses=True,
            encoding="utf-8",
            auto_close_connection_pool=True
        )

    async def save(self, session: Session) -> None:
        payload = json_encoder(session.to_record())
        if self.ttl:
            await self.redis.set(self.key, payload, ex=self.ttl)
        else:
            await self.redis.set(self.key, payload)

    async def load(self) -> Optional[Session]:
        data = await self.redis.get(self.key)
        if not data:
            return None
        return Session.from_record(json_decoder(data))

    async def clear(self) -> None:
        await self.redis.delete(self.key)

    async def close(self) -> None:
        await self.redis.aclose()
