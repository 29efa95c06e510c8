"""
GridAtlas — External Data Gateway
One fetch path for every live data source: TTL cache → remote call →
deterministic simulated fallback.

How it works
------------
1. **Cache lookup** — an entry younger than the caller's TTL is returned
   unchanged (payload and its ``simulated`` marker).  An expired entry is
   removed at the moment it is found stale; there is no background sweep.
2. **In-flight join** — if another task is already loading the same key,
   the caller awaits that task instead of issuing its own request.  At most
   one remote/fallback operation is outstanding per key.
3. **Remote call** — each attempt is bounded by ``timeout`` seconds.
   Timeouts, transport errors and 5xx responses are retried with linear
   backoff up to ``max_attempts``; a 4xx response is final.
4. **Fallback** — when the remote call is absent (missing credential) or
   every attempt failed, ``fallback(key)`` produces the payload.  Simulated
   payloads are seeded from the key, so the same key always yields the
   same data.

Failures are logged and never raised to the caller.

Deterministic simulation
------------------------
``SeededRandom`` is SplitMix64 seeded with the first eight bytes
(big-endian) of ``MD5(key)``.  ``random()`` takes the top 53 bits of each
output divided by 2**53, so any implementation of the same algorithm
reproduces the same simulated values bit for bit.
"""

from __future__ import annotations

import asyncio
import hashlib
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

import httpx
from loguru import logger

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HOUR_MS: int = 60 * 60 * 1000

RECORDS_TTL_MS: int = 24 * HOUR_MS    # climate records, energy sales
WEATHER_TTL_MS: int = 12 * HOUR_MS    # archive / forecast / climate model

REQUEST_TIMEOUT: float = 30.0
MAX_ATTEMPTS: int      = 2
RETRY_BACKOFF: float   = 1.0

_MASK64 = (1 << 64) - 1

Clock      = Callable[[], float]
RemoteCall = Callable[[], Awaitable[Any]]
Fallback   = Callable[[str], Union[Any, Awaitable[Any]]]


def epoch_ms() -> float:
    """Wall-clock time in milliseconds since the epoch."""
    return time.time() * 1000


# ---------------------------------------------------------------------------
# Seeded PRNG
# ---------------------------------------------------------------------------


class SeededRandom:
    """SplitMix64 pseudo-random generator."""

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK64

    @classmethod
    def from_key(cls, key: str) -> "SeededRandom":
        digest = hashlib.md5(key.encode("utf-8")).digest()
        return cls(int.from_bytes(digest[:8], "big"))

    def next_u64(self) -> int:
        self._state = (self._state + 0x9E3779B97F4A7C15) & _MASK64
        z = self._state
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK64
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK64
        return z ^ (z >> 31)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return (self.next_u64() >> 11) / float(1 << 53)

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.random()


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry:
    key:           str
    payload:       Any
    fetched_at_ms: float
    simulated:     bool


@dataclass(frozen=True)
class FetchResult:
    payload:   Any
    simulated: bool


class TTLCache:
    """
    In-memory cache with lazy, read-time expiry.

    Parameters
    ----------
    clock:
        Returns the current time in epoch milliseconds.  Inject a fake in
        tests to control expiry.
    """

    def __init__(self, clock: Clock = epoch_ms) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def now(self) -> float:
        return self._clock()

    def get(self, key: str, ttl_ms: float) -> Optional[CacheEntry]:
        """Return the entry if ``now − fetched_at ≤ ttl_ms``; evict and return None otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at_ms > ttl_ms:
            del self._entries[key]
            logger.debug("Cache expired | key={}", key)
            return None
        return entry

    def put(self, key: str, payload: Any, simulated: bool) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, fetched_at_ms=self._clock(), simulated=simulated)
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchRequest:
    key:         str
    ttl_ms:      float
    remote_call: Optional[RemoteCall]
    fallback:    Fallback


_FAILED = object()


class ExternalDataGateway:
    """
    Fetch-with-cache-and-fallback shared by every data source client.

    Parameters
    ----------
    cache:
        Cache instance; a fresh ``TTLCache`` on the wall clock by default.
    timeout:
        Per-attempt bound on the remote call, in seconds.
    max_attempts:
        Remote attempts before falling back (1 = no retry).
    backoff_seconds:
        Sleep before retry *n* is ``backoff_seconds × n``.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        timeout: float = REQUEST_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_seconds: float = RETRY_BACKOFF,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.cache = cache if cache is not None else TTLCache()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._inflight: dict[str, asyncio.Future] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(
        self,
        key: str,
        ttl_ms: float,
        remote_call: Optional[RemoteCall],
        fallback: Fallback,
    ) -> FetchResult:
        """
        Return the payload for ``key`` and whether it was simulated.

        ``remote_call=None`` signals a missing credential and goes straight
        to ``fallback``.
        """
        entry = self.cache.get(key, ttl_ms)
        if entry is not None:
            logger.debug("Cache hit | key={} | simulated={}", key, entry.simulated)
            return FetchResult(entry.payload, entry.simulated)

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("Joining in-flight request | key={}", key)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._load(key, remote_call, fallback))
        self._inflight[key] = task
        task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    async def fetch_many(self, requests: Sequence[FetchRequest]) -> list[FetchResult]:
        """Fetch concurrently; results are in input order, not completion order."""
        return list(await asyncio.gather(
            *(self.fetch(r.key, r.ttl_ms, r.remote_call, r.fallback) for r in requests)
        ))

    def in_flight(self) -> int:
        return len(self._inflight)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _load(
        self,
        key: str,
        remote_call: Optional[RemoteCall],
        fallback: Fallback,
    ) -> FetchResult:
        if remote_call is None:
            logger.info("No credential for '{}' — using simulated data.", key)
        else:
            payload = await self._call_remote(key, remote_call)
            if payload is not _FAILED:
                self.cache.put(key, payload, simulated=False)
                logger.info("Fetched '{}' from upstream.", key)
                return FetchResult(payload, False)
            logger.warning("Upstream unavailable for '{}' — falling back.", key)

        payload = fallback(key)
        if inspect.isawaitable(payload):
            payload = await payload
        simulated = bool(getattr(payload, "simulated", True))
        self.cache.put(key, payload, simulated=simulated)
        return FetchResult(payload, simulated)

    async def _call_remote(self, key: str, remote_call: RemoteCall) -> Any:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(remote_call(), timeout=self.timeout)
            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                logger.warning("Timeout for '{}' (attempt {}/{}): {}", key, attempt, self.max_attempts, exc)
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if 400 <= status < 500:
                    logger.warning("Client error {} for '{}' — not retrying.", status, key)
                    return _FAILED
                logger.warning("Server error {} for '{}' (attempt {}/{})", status, key, attempt, self.max_attempts)
            except Exception as exc:
                logger.warning("Request error for '{}' (attempt {}/{}): {}", key, attempt, self.max_attempts, exc)

            if attempt < self.max_attempts:
                wait = self.backoff_seconds * attempt
                logger.info("Retrying '{}' in {:.1f}s…", key, wait)
                await asyncio.sleep(wait)

        return _FAILED
