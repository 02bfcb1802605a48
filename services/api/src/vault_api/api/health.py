"""健康检查接口。"""

import logging
from time import perf_counter

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vault_api.core.errors import with_retry
from vault_api.db.session import get_db
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.system import HealthReportData
from vault_api.services.container import AppServices, get_services
from vault_api.utils.response import success, utc_now_iso

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger("vault_api.health")

HEALTH_CACHE_KEY = "health_check"


def _timed(check) -> dict[str, object]:
    started = perf_counter()
    try:
        check()
    except (SQLAlchemyError, RedisError, OSError, ValueError) as exc:
        logger.error("health check failed error=%s", exc)
        return {
            "status": "unhealthy",
            "response_time_ms": round((perf_counter() - started) * 1000, 2),
            "error": str(exc),
        }
    return {"status": "healthy", "response_time_ms": round((perf_counter() - started) * 1000, 2)}


def _overall(checks: dict[str, dict[str, object]]) -> str:
    unhealthy = [name for name, check in checks.items() if check["status"] != "healthy"]
    if not unhealthy:
        return "healthy"
    if "database" in unhealthy:
        return "unhealthy"
    return "degraded"


@router.get(
    "",
    summary="健康检查",
    description="检测数据库连通性与缓存读写；数据库不可用时返回 503，仅缓存异常时为 degraded。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthReportData],
    responses={503: {"model": SuccessResponse[HealthReportData]}, 500: {"model": ErrorResponse}},
)
def health(
    request: Request,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """执行轻量依赖检查。"""

    def _database() -> None:
        # 仅执行最小查询，避免探针请求给数据库带来额外压力。
        with_retry(lambda: db.execute(text("select 1")), max_retries=2, delay_seconds=0.1)

    def _cache() -> None:
        services.store.setex(HEALTH_CACHE_KEY, 10, "ok")
        if services.store.get(HEALTH_CACHE_KEY) != "ok":
            raise ValueError("cache round trip mismatch")

    checks = {"database": _timed(_database), "cache": _timed(_cache)}
    report = {
        "status": _overall(checks),
        "timestamp": utc_now_iso(),
        "version": services.settings.app_version,
        "environment": services.settings.app_env,
        "checks": checks,
    }
    payload = success(request, report)
    if report["status"] == "unhealthy":
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)
    return payload
