from __future__ import annotations

import logging
import os
import threading
import time
from typing import Protocol

from .settings import get_settings


logger = logging.getLogger("shopdesk.rate_limit")


class _Backend(Protocol):
    def increment(self, key: str, window_seconds: int) -> int:
        ...

    def count(self, key: str, window_seconds: int) -> int:
        ...

    def reset(self, key: str) -> None:
        ...


class InMemoryBackend:
    """Process-local sliding window storage."""

    def __init__(self) -> None:
        self._store: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, window_seconds: int, now: float) -> list[float]:
        return [ts for ts in self._store.get(key, []) if now - ts <= window_seconds]

    def increment(self, key: str, window_seconds: int) -> int:
        now = time.time()
        with self._lock:
            hits = self._live(key, window_seconds, now)
            hits.append(now)
            self._store[key] = hits
            return len(hits)

    def count(self, key: str, window_seconds: int) -> int:
        now = time.time()
        with self._lock:
            hits = self._live(key, window_seconds, now)
            self._store[key] = hits
            return len(hits)

    def reset(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class RedisBackend:
    """Redis-backed sliding window shared across workers.

    fail_policy:
      - 'open'   → on Redis error, allow traffic (no limiting)
      - 'closed' → on Redis error, block traffic (treat as exceeded)
      - 'memory' → on Redis error, fallback to in-proc memory backend
    """

    def __init__(self, url: str, fail_policy: str = "open", fallback: _Backend | None = None) -> None:
        from redis import Redis

        self._client: Redis = Redis.from_url(url, decode_responses=True)
        self._prefix = "shopdesk:login:rl:"
        self._fail_policy = fail_policy
        self._fallback = fallback or InMemoryBackend()

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _on_error(self, exc: Exception, key: str, window_seconds: int, *, bump: bool) -> int:
        policy = self._fail_policy
        logger.error("Redis rate limit error (%s): %s", policy, exc)
        if policy == "open":
            return 0
        if policy == "closed":
            return 10**9
        if bump:
            return self._fallback.increment(key, window_seconds)
        return self._fallback.count(key, window_seconds)

    def increment(self, key: str, window_seconds: int) -> int:
        now = time.time()
        k = self._full_key(key)
        try:
            pipe = self._client.pipeline()
            pipe.zremrangebyscore(k, "-inf", now - window_seconds)
            pipe.zadd(k, {str(now): now})
            pipe.zcard(k)
            pipe.expire(k, window_seconds)
            _, _, count, _ = pipe.execute()
            return int(count)
        except Exception as exc:  # redis raises many connection error types
            return self._on_error(exc, key, window_seconds, bump=True)

    def count(self, key: str, window_seconds: int) -> int:
        now = time.time()
        k = self._full_key(key)
        try:
            pipe = self._client.pipeline()
            pipe.zremrangebyscore(k, "-inf", now - window_seconds)
            pipe.zcard(k)
            _, count = pipe.execute()
            return int(count)
        except Exception as exc:
            return self._on_error(exc, key, window_seconds, bump=False)

    def reset(self, key: str) -> None:
        try:
            self._client.delete(self._full_key(key))
        except Exception as exc:
            logger.warning("Redis reset failed (%s): %s", self._fail_policy, exc)
            if self._fail_policy == "memory":
                self._fallback.reset(key)


class RateLimiter:
    """Facade that hides backend selection.

    Login uses it in two steps: ``is_blocked`` before checking credentials and
    ``hit`` after a failed attempt, so successful logins are never counted.
    """

    def __init__(self, backend: _Backend) -> None:
        self._backend = backend

    def too_many_attempts(self, key: str, window_seconds: int, max_attempts: int) -> bool:
        return self._backend.increment(key, window_seconds) > max_attempts

    def is_blocked(self, key: str, window_seconds: int, max_attempts: int) -> bool:
        return self._backend.count(key, window_seconds) >= max_attempts

    def hit(self, key: str, window_seconds: int) -> int:
        return self._backend.increment(key, window_seconds)

    def reset(self, key: str) -> None:
        self._backend.reset(key)


_singleton: RateLimiter | None = None
_singleton_lock = threading.Lock()


def _build_backend() -> _Backend:
    settings = get_settings()
    backend = settings.login_rate_limit_backend
    if backend == "auto":
        has_redis = bool(settings.login_rate_limit_redis_url or os.environ.get("REDIS_URL"))
        backend = "redis" if has_redis else "memory"
        logger.debug("Rate limit backend auto-detected: %s", backend)
    if backend == "redis":
        url = settings.login_rate_limit_redis_url or os.environ.get("REDIS_URL")
        if not url:
            raise RuntimeError("LOGIN_RATE_LIMIT_REDIS_URL (또는 REDIS_URL)이 설정되어야 Redis rate limit 백엔드를 사용할 수 있습니다.")
        policy = settings.login_rate_limit_redis_policy
        fb = InMemoryBackend() if policy == "memory" else None
        return RedisBackend(url, fail_policy=policy, fallback=fb)
    logger.info("Rate limit backend: in-memory (단일 프로세스에서만 유효)")
    return InMemoryBackend()


def get_login_rate_limiter() -> RateLimiter:
    global _singleton
    if _singleton is None:
        with _singleton_lock:
            if _singleton is None:
                _singleton = RateLimiter(_build_backend())
    return _singleton


def reset_login_rate_limiter() -> None:
    """Testing helper: drop the cached limiter so the backend is rebuilt."""
    global _singleton
    with _singleton_lock:
        _singleton = None


def client_ip(request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    client = getattr(request, "client", None)
    return getattr(client, "host", None) or "unknown"
