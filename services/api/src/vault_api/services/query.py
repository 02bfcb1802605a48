"""查询缓存与查询构造辅助。"""

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from sqlalchemy import Select

from vault_api.core.metrics import PerformanceMonitor
from vault_api.services.cache import CacheManager

T = TypeVar("T")


def execute_with_cache(
    cache: CacheManager,
    monitor: PerformanceMonitor,
    key: str,
    compute: Callable[[], T],
    *,
    ttl: int = 300,
    tags: list[str] | None = None,
) -> T:
    """命中缓存直接返回，否则计算、计时并写入缓存。

    ``compute`` 抛出的异常原样向上传播，不写缓存。
    """
    cached = cache.get(key)
    if cached is not None:
        return cached

    with monitor.measure(f"query:{key.split(':', 1)[0]}"):
        result = compute()
    cache.set(key, result, ttl=ttl, tags=tags)
    return result


def build_query(
    stmt: Select,
    model: Any,
    *,
    filters: Mapping[str, Any] | None = None,
    order_by: str = "created_at",
    descending: bool = True,
    limit: int | None = None,
    offset: int = 0,
) -> Select:
    """统一拼装过滤、排序与分页。

    列表值转换为 IN 条件，标量值转换为等值条件，None 值忽略。
    """
    for field, value in (filters or {}).items():
        if value is None:
            continue
        column = getattr(model, field)
        if isinstance(value, (list, tuple, set)):
            stmt = stmt.where(column.in_(list(value)))
        else:
            stmt = stmt.where(column == value)

    order_column = getattr(model, order_by)
    stmt = stmt.order_by(order_column.desc() if descending else order_column.asc(), model.id)
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt
