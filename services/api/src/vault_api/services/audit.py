"""审计服务。"""

import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from vault_api.core.logs import audit
from vault_api.models.activity import ActivityLog

logger = logging.getLogger("vault_api.audit")


def client_ip(request: Request) -> str:
    """从代理头或连接信息中提取客户端 IP。"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def record_activity(
    db: Session,
    request: Request,
    *,
    user_id: UUID | None,
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    """写入操作日志（随调用方事务提交）并输出审计日志。"""
    request_id = getattr(request.state, "request_id", None)
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details or {},
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_id=request_id,
    )
    db.add(entry)
    audit(
        logger,
        action,
        user_id=str(user_id) if user_id else None,
        resource_type=resource_type,
        resource_id=entry.resource_id,
        request_id=request_id,
    )
    return entry
