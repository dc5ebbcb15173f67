"""Caching and rate limiting for upstream form lookups."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

import orjson
import redis.asyncio as redis
from pydantic import ValidationError

from src.core.logging import get_logger
from src.forms.normalizer import NormalizedForm

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "form_data:"

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


def cache_key(external_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}{external_id}"


class FormDataCache(Protocol):
    """Storage for normalized forms keyed by the external client id."""

    async def get(self, external_id: str) -> NormalizedForm | None: ...

    async def set(self, form: NormalizedForm) -> None: ...

    async def invalidate(self, external_id: str) -> None: ...


class InMemoryFormDataCache:
    """Process-local cache with per-entry expiry."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, NormalizedForm]] = {}

    async def get(self, external_id: str) -> NormalizedForm | None:
        entry = self._entries.get(external_id)
        if entry is None:
            return None
        expires_at, form = entry
        if self._clock() >= expires_at:
            del self._entries[external_id]
            return None
        return form

    async def set(self, form: NormalizedForm) -> None:
        self._entries[form.external_id] = (self._clock() + self.ttl_seconds, form)

    async def invalidate(self, external_id: str) -> None:
        self._entries.pop(external_id, None)


class RedisFormDataCache:
    """Redis-backed cache; expiry is delegated to key TTLs."""

    def __init__(self, client: redis.Redis, ttl_seconds: int) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, external_id: str) -> NormalizedForm | None:
        try:
            raw = await self.client.get(cache_key(external_id))
        except redis.RedisError as exc:
            logger.warning("form_cache_unavailable", external_id=external_id, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return NormalizedForm.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError):
            logger.warning("form_cache_entry_corrupt", external_id=external_id)
            await self.invalidate(external_id)
            return None

    async def set(self, form: NormalizedForm) -> None:
        payload = orjson.dumps(form.model_dump(mode="json")).decode()
        try:
            await self.client.set(cache_key(form.external_id), payload, ex=self.ttl_seconds)
        except redis.RedisError as exc:
            logger.warning(
                "form_cache_unavailable", external_id=form.external_id, error=str(exc)
            )

    async def invalidate(self, external_id: str) -> None:
        try:
            await self.client.delete(cache_key(external_id))
        except redis.RedisError as exc:
            logger.warning("form_cache_unavailable", external_id=external_id, error=str(exc))


class RateLimiter:
    """Keeps upstream calls at least `min_interval` seconds apart.

    Callers that arrive too early wait for their slot instead of being
    rejected. The spacing is shared by everything holding this instance.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def acquire(self) -> float:
        """Wait until a call is allowed; returns the seconds waited."""
        async with self._lock:
            waited = 0.0
            if self._last_call is not None:
                remaining = self.min_interval - (self._clock() - self._last_call)
                if remaining > 0:
                    logger.debug("form_api_rate_limited", wait_seconds=round(remaining, 3))
                    await self._sleep(remaining)
                    waited = remaining
            self._last_call = self._clock()
            return waited
