"""Redis-backed session store."""

import json
import logging
import secrets
from dataclasses import dataclass

from redis import asyncio as aioredis

from lossy_mint.domain.sessions import Session, session_key
from lossy_mint.errors import SessionNotFound
from lossy_mint.services.sessions import SessionStore

logger = logging.getLogger(__name__)

# Deletes the lock only when it still holds the caller's token.
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


@dataclass
class RedisSessionStore(SessionStore):
    """Stores sessions as JSON strings with a TTL."""

    client: aioredis.Redis
    counter_key: str

    @classmethod
    def create(cls, redis_url: str, counter_key: str) -> "RedisSessionStore":
        """Create a store with a managed connection pool."""
        client = aioredis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        return cls(client=client, counter_key=counter_key)

    async def next_session_index(self) -> int:
        """Atomically increment and return the session counter."""
        return int(await self.client.incr(self.counter_key))

    async def current_session_index(self) -> int:
        raw = await self.client.get(self.counter_key)
        return int(raw) if raw else 0

    async def create_session(self, session: Session, ttl_seconds: int) -> None:
        await self.client.set(
            session_key(session.session_id),
            json.dumps(session.to_dict()),
            ex=ttl_seconds,
        )

    async def get_session(self, session_id: str) -> Session | None:
        raw = await self.client.get(session_key(session_id))
        if raw is None:
            return None
        return Session.from_dict(json.loads(raw))

    async def update_session(
        self, session: Session, ttl_seconds: int | None = None
    ) -> None:
        """Overwrite an existing session, keeping its expiry unless a TTL is given."""
        expiry: dict[str, object] = (
            {"ex": ttl_seconds} if ttl_seconds is not None else {"keepttl": True}
        )
        written = await self.client.set(
            session_key(session.session_id),
            json.dumps(session.to_dict()),
            xx=True,
            **expiry,
        )
        if not written:
            raise SessionNotFound(session.session_id)

    async def acquire_lock(self, name: str, ttl_seconds: int) -> str | None:
        token = secrets.token_hex(16)
        acquired = await self.client.set(name, token, nx=True, ex=ttl_seconds)
        return token if acquired else None

    async def release_lock(self, name: str, token: str) -> None:
        released = await self.client.eval(_RELEASE_LOCK_SCRIPT, 1, name, token)
        if not released:
            logger.warning("Lock expired before release", extra={"lock": name})

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self.client.aclose()
