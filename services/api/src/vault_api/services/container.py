"""应用级服务容器。

缓存、限流器、日志缓冲、耗时统计、身份服务与对象存储在应用启动时统一创建，
挂载到 ``app.state.services``，路由通过依赖注入获取；测试可直接替换其中的后端。
"""

from dataclasses import dataclass, field
import logging
from typing import Any

from fastapi import Request
from redis.exceptions import RedisError

from vault_api.core.config import Settings
from vault_api.core.logs import LogBuffer, setup_logging
from vault_api.core.metrics import PerformanceMonitor
from vault_api.services.cache import CacheManager
from vault_api.services.identity import IdentityProvider
from vault_api.services.kv import connect_store
from vault_api.services.rate_limit import RateLimiter
from vault_api.services.storage import ObjectStorage

logger = logging.getLogger("vault_api.services")


@dataclass
class AppServices:
    """请求处理链共享的服务集合。"""

    # 运行配置。
    settings: Settings
    # 键值存储客户端（Redis 或进程内实现）。
    store: Any = None
    # 查询结果缓存。
    cache: CacheManager | None = None
    # 业务接口按 IP 的限流器。
    rate_limiter: RateLimiter | None = None
    # 单路由限流器，计数与业务限流器相互独立。
    route_limiters: dict[str, RateLimiter] = field(default_factory=dict)
    # 内存日志缓冲。
    log_buffer: LogBuffer | None = None
    # 操作耗时统计。
    monitor: PerformanceMonitor | None = None
    # 会话与一次性验证码服务。
    identity: IdentityProvider | None = None
    # 文件对象存储。
    storage: ObjectStorage | None = None

    def init(self) -> "AppServices":
        """按配置创建全部服务，重复调用不会重建已存在的实例。"""
        settings = self.settings
        if self.log_buffer is None:
            self.log_buffer = setup_logging(settings)
        if self.store is None:
            self.store = connect_store(settings)
        if self.cache is None:
            self.cache = CacheManager(self.store, default_ttl=settings.cache_default_ttl_seconds)
        if self.rate_limiter is None:
            self.rate_limiter = RateLimiter(
                self.store,
                limit=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
                prefix="ratelimit:auth",
            )
        if self.monitor is None:
            self.monitor = PerformanceMonitor(window_size=settings.metrics_window_size)
        if self.identity is None:
            self.identity = IdentityProvider(settings, self.store)
        if self.storage is None:
            self.storage = ObjectStorage(settings.storage_root, public_base_url=settings.storage_public_base_url)
        logger.info("services initialized env=%s", settings.app_env)
        return self

    def route_limiter(self, limit: int, window_seconds: int) -> RateLimiter:
        """按限额与窗口复用单路由限流器。"""
        key = f"{limit}:{window_seconds}"
        limiter = self.route_limiters.get(key)
        if limiter is None:
            limiter = RateLimiter(self.store, limit=limit, window_seconds=window_seconds, prefix="ratelimit:route")
            self.route_limiters[key] = limiter
        return limiter

    def shutdown(self) -> None:
        """释放外部连接。"""
        if self.store is None:
            return
        try:
            self.store.close()
        except (RedisError, OSError) as exc:
            logger.warning("store close failed error=%s", exc)
        logger.info("services shut down")


def get_services(request: Request) -> AppServices:
    """返回挂载在应用上的服务容器。"""
    return request.app.state.services
