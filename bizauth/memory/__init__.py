from .abstract import SessionStore
from .mem import InMemorySessionStore
from .redis import RedisSessionStore


__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
]
