"""固定窗口限流。"""

from dataclasses import dataclass
import logging
import time
from typing import Any

logger = logging.getLogger("vault_api.rate_limit")


@dataclass(frozen=True)
class RateLimitResult:
    """一次限流判定结果。"""

    # 是否放行。
    success: bool
    # 窗口内允许的请求数。
    limit: int
    # 窗口内剩余可用次数。
    remaining: int
    # 窗口重置时间（Unix 秒）。
    reset: int

    def retry_after(self, now: float | None = None) -> int:
        """距窗口重置的秒数，至少为 1。"""
        current = time.time() if now is None else now
        return max(1, int(self.reset - current))

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


class RateLimiter:
    """按标识计数的固定窗口限流器，计数存放在共享键值存储。

    后端异常向调用方抛出，由调用方决定放行或拒绝。
    """

    def __init__(
        self,
        store: Any,
        *,
        limit: int,
        window_seconds: int,
        prefix: str = "ratelimit",
        clock=time.time,
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._clock = clock

    def limit_request(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        window_index = int(now // self.window_seconds)
        reset = (window_index + 1) * self.window_seconds
        key = f"{self.prefix}:{identifier}:{window_index}"

        count = int(self.store.incr(key))
        if count == 1:
            self.store.expire(key, self.window_seconds)

        allowed = count <= self.limit
        if not allowed:
            logger.info("rate limit exceeded identifier=%s count=%s limit=%s", identifier, count, self.limit)
        return RateLimitResult(
            success=allowed,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset=reset,
        )
