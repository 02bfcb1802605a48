"""运行指标接口。"""

import os
import platform
import sys
import time
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, status

from vault_api.dependencies import require_admin
from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.system import MetricsData
from vault_api.services.authorization import Actor
from vault_api.services.container import AppServices, get_services
from vault_api.utils.response import success

router = APIRouter(prefix="/metrics", tags=["metrics"])

_PROCESS_STARTED_AT = time.monotonic()


@router.get(
    "",
    summary="运行指标",
    description="返回内存缓冲中的最近日志、各操作耗时统计与进程信息，仅管理员可用。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MetricsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_metrics(
    request: Request,
    level: Literal["debug", "info", "warn", "error"] | None = Query(default=None, description="最低日志级别。"),
    limit: int = Query(default=100, ge=1, le=1000, description="返回日志条数。"),
    actor: Actor = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    """查询运行指标。"""
    data = {
        "logs": services.log_buffer.get_logs(level=level, limit=limit),
        "performance": services.monitor.get_all_metrics(),
        "system": {
            "uptime_seconds": round(time.monotonic() - _PROCESS_STARTED_AT, 1),
            "pid": os.getpid(),
            "python_version": sys.version.split()[0],
            "platform": platform.platform(),
            "environment": services.settings.app_env,
            "buffered_logs": len(services.log_buffer),
        },
    }
    return success(request, data)
