"""带标签失效的缓存服务。

缓存是尽力而为的：后端任何异常都只记录日志，读取按未命中处理，写入与删除静默跳过。
"""

import base64
import json
import logging
from typing import Any

from redis.exceptions import RedisError

logger = logging.getLogger("vault_api.cache")

# 后端异常集合：网络/协议错误以及序列化失败。
_BACKEND_ERRORS = (RedisError, OSError, ValueError, TypeError)


def _tag_key(tag: str) -> str:
    return f"tag:{tag}"


class CacheManager:
    """基于键值存储的 JSON 缓存。"""

    def __init__(self, store: Any, *, default_ttl: int = 300) -> None:
        self.store = store
        self.default_ttl = default_ttl

    def get(self, key: str) -> Any | None:
        """读取缓存，未命中或后端异常返回 None。"""
        try:
            raw = self.store.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except _BACKEND_ERRORS as exc:
            logger.warning("cache get failed key=%s error=%s", key, exc)
            return None

    def set(self, key: str, value: Any, ttl: int | None = None, tags: list[str] | None = None) -> None:
        """写入缓存并登记标签索引；None 表示未命中，不写入。"""
        if value is None:
            return
        expires_in = ttl or self.default_ttl
        try:
            self.store.setex(key, expires_in, json.dumps(value, default=str))
            for tag in tags or []:
                self.store.sadd(_tag_key(tag), key)
                self.store.expire(_tag_key(tag), expires_in)
        except _BACKEND_ERRORS as exc:
            logger.warning("cache set failed key=%s error=%s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except _BACKEND_ERRORS as exc:
            logger.warning("cache delete failed key=%s error=%s", key, exc)

    def invalidate_by_tag(self, tag: str) -> int:
        """删除标签下全部缓存键及标签索引，返回删除的键数量。"""
        try:
            keys = list(self.store.smembers(_tag_key(tag)))
            if keys:
                self.store.delete(*keys)
            self.store.delete(_tag_key(tag))
            return len(keys)
        except _BACKEND_ERRORS as exc:
            logger.warning("cache invalidate failed tag=%s error=%s", tag, exc)
            return 0

    def invalidate_tags(self, *tags: str) -> None:
        for tag in tags:
            self.invalidate_by_tag(tag)

    @staticmethod
    def generate_key(prefix: str, params: dict[str, Any]) -> str:
        """按参数生成缓存键，参数顺序不影响结果。"""
        encoded = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
        return f"{prefix}:{base64.b64encode(encoded.encode('utf-8')).decode('ascii')}"
