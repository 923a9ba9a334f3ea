"""
Per-session gate tallies (admitted / already_used / invalid).

Observational only: tallies drive the scanner screen and are never used to
decide admission. With Redis the counts are shared by every API worker
(HINCRBY on `gate:session:<id>`); without it each process keeps its own.
"""

import time
from abc import ABC, abstractmethod
from collections import Counter, OrderedDict
from typing import Callable, Optional

import redis.asyncio as redis

from ticket_engine.core.logging import get_logger
from ticket_engine.core.metrics import redis_errors

logger = get_logger(__name__)

TALLY_FIELDS = ("admitted", "already_used", "invalid")
SESSION_TTL_SECONDS = 24 * 60 * 60
MAX_LOCAL_SESSIONS = 10_000


def _empty() -> dict[str, int]:
    return {name: 0 for name in TALLY_FIELDS}


class ScanTally(ABC):
    @abstractmethod
    async def record(self, session_id: str, result: str) -> dict[str, int]:
        """Count one scan result and return the session's running tally."""

    @abstractmethod
    async def get(self, session_id: str) -> dict[str, int]:
        pass


class LocalScanTally(ScanTally):
    """
    Per-process tallies. Sessions idle for `ttl_seconds` are forgotten, like
    the Redis keys, and at most `max_sessions` are kept (least recently used
    go first).
    """

    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        max_sessions: int = MAX_LOCAL_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        # session_id -> (last touched, counts), oldest first
        self._sessions: OrderedDict[str, tuple[float, Counter]] = OrderedDict()

    async def record(self, session_id: str, result: str) -> dict[str, int]:
        now = self._clock()
        self._evict(now)
        _, counts = self._sessions.pop(session_id, (now, Counter()))
        counts[result] += 1
        self._sessions[session_id] = (now, counts)
        if len(self._sessions) > self._max_sessions:
            self._sessions.popitem(last=False)
        return self._as_tally(counts)

    async def get(self, session_id: str) -> dict[str, int]:
        self._evict(self._clock())
        entry = self._sessions.get(session_id)
        return self._as_tally(entry[1] if entry else {})

    def _evict(self, now: float) -> None:
        while self._sessions:
            touched, _ = next(iter(self._sessions.values()))
            if now - touched < self._ttl:
                break
            self._sessions.popitem(last=False)

    @staticmethod
    def _as_tally(counts) -> dict[str, int]:
        tally = _empty()
        tally.update(counts)
        return tally

    def __len__(self) -> int:
        return len(self._sessions)


class RedisScanTally(ScanTally):
    def __init__(self, client: redis.Redis, fallback: Optional[ScanTally] = None) -> None:
        self._client = client
        self._fallback = LocalScanTally() if fallback is None else fallback

    @staticmethod
    def _key(session_id: str) -> str:
        return f"gate:session:{session_id}"

    async def record(self, session_id: str, result: str) -> dict[str, int]:
        key = self._key(session_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hincrby(key, result, 1)
                pipe.expire(key, SESSION_TTL_SECONDS)
                pipe.hgetall(key)
                _, _, raw = await pipe.execute()
        except redis.RedisError as e:
            redis_errors.labels(operation="tally_record").inc()
            logger.warning("scan_tally_fallback", session_id=session_id, error=str(e))
            return await self._fallback.record(session_id, result)
        return self._decode(raw)

    async def get(self, session_id: str) -> dict[str, int]:
        try:
            raw = await self._client.hgetall(self._key(session_id))
        except redis.RedisError as e:
            redis_errors.labels(operation="tally_get").inc()
            logger.warning("scan_tally_fallback", session_id=session_id, error=str(e))
            return await self._fallback.get(session_id)
        return self._decode(raw)

    @staticmethod
    def _decode(raw: dict) -> dict[str, int]:
        tally = _empty()
        tally.update({name: int(count) for name, count in raw.items()})
        return tally
