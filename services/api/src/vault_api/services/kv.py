"""键值存储后端。

配置 ``redis_url`` 时直接使用 Redis 客户端；否则使用进程内存储，
其方法签名与 Redis 客户端保持一致，供缓存、限流、会话共用。
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from threading import Lock
from time import monotonic
from typing import Any

from redis import Redis

from vault_api.core.config import Settings

logger = logging.getLogger("vault_api.kv")


class LocalStore:
    """进程内键值存储，支持字符串、集合与过期时间。

    写入时清理全部已过期键。
    """

    def __init__(self, *, clock: Callable[[], float] = monotonic) -> None:
        self._values: dict[str, Any] = {}
        self._expires: dict[str, float] = {}
        self._lock = Lock()
        self._clock = clock

    def _purge(self, key: str, now: float) -> None:
        expires_at = self._expires.get(key)
        if expires_at is not None and expires_at <= now:
            self._values.pop(key, None)
            self._expires.pop(key, None)

    def _sweep(self) -> None:
        now = self._clock()
        expired_keys = [key for key, expires_at in self._expires.items() if expires_at <= now]
        for key in expired_keys:
            self._values.pop(key, None)
            self._expires.pop(key, None)

    def _live(self, key: str) -> Any:
        self._purge(key, self._clock())
        return self._values.get(key)

    def dbsize(self) -> int:
        with self._lock:
            return len(self._values)

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        with self._lock:
            self._sweep()
            self._values[key] = str(value)
            if ex:
                self._expires[key] = self._clock() + ex
            else:
                self._expires.pop(key, None)
        return True

    def setex(self, key: str, time: int, value: Any) -> bool:
        return self.set(key, value, ex=time)

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._live(key) is not None:
                    removed += 1
                self._values.pop(key, None)
                self._expires.pop(key, None)
        return removed

    def exists(self, *keys: str) -> int:
        with self._lock:
            return sum(1 for key in keys if self._live(key) is not None)

    def incr(self, key: str) -> int:
        with self._lock:
            self._sweep()
            current = int(self._live(key) or 0) + 1
            self._values[key] = str(current)
        return current

    def expire(self, key: str, time: int) -> bool:
        with self._lock:
            if self._live(key) is None:
                return False
            self._expires[key] = self._clock() + time
        return True

    def ttl(self, key: str) -> int:
        with self._lock:
            if self._live(key) is None:
                return -2
            expires_at = self._expires.get(key)
        if expires_at is None:
            return -1
        return max(0, int(round(expires_at - self._clock())))

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            self._sweep()
            current = self._live(key)
            if not isinstance(current, set):
                current = set()
                self._values[key] = current
            before = len(current)
            current.update(str(member) for member in members)
            return len(current) - before

    def smembers(self, key: str) -> set[str]:
        with self._lock:
            current = self._live(key)
            return set(current) if isinstance(current, set) else set()

    def flushall(self) -> bool:
        with self._lock:
            self._values.clear()
            self._expires.clear()
        return True

    def close(self) -> None:
        self.flushall()


def connect_store(settings: Settings) -> Redis | LocalStore:
    """按配置创建键值存储客户端。"""
    if settings.redis_url:
        logger.info("using redis key-value store")
        return Redis.from_url(settings.redis_url, decode_responses=True)
    logger.info("redis_url not configured, using in-process key-value store")
    return LocalStore()
