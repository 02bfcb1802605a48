"""数据导出接口。"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from vault_api.core.errors import NotFoundError
from vault_api.db.session import get_db
from vault_api.dependencies import get_current_actor, route_rate_limit
from vault_api.models.enums import AuditAction
from vault_api.schemas.common import ErrorResponse
from vault_api.schemas.export import ExportRequest
from vault_api.services.audit import record_activity
from vault_api.services.authorization import Actor
from vault_api.services.container import AppServices, get_services
from vault_api.services.export import (
    MEDIA_TYPE_BY_FORMAT,
    export_filename,
    export_record,
    exportable_space_ids,
    render_export,
)
from vault_api.services.items import readable_items_for_export
from vault_api.services.uploads import attachments_for_items
from vault_api.utils.response import utc_now_iso

router = APIRouter(prefix="/export", tags=["export"])

# 每个 IP 在限流窗口内的导出次数上限。
EXPORT_RATE_LIMIT = 5


@router.post(
    "",
    summary="导出数据",
    description="导出自己的个人空间与可读公共空间中的条目，支持 json/csv/markdown，以附件形式下载。",
    status_code=status.HTTP_200_OK,
    response_class=Response,
    responses={
        200: {"content": {"application/json": {}, "text/csv": {}, "text/markdown": {}}},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
    dependencies=[Depends(route_rate_limit(limit=EXPORT_RATE_LIMIT))],
)
def export_data(
    payload: ExportRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """导出数据。"""
    space_ids = exportable_space_ids(db, actor=actor, space_ids=payload.space_ids)
    if not space_ids:
        raise NotFoundError("Accessible spaces", context={"reason": "No accessible spaces found"})

    with services.monitor.measure("export"):
        rows = readable_items_for_export(
            db, space_ids=space_ids, date_from=payload.date_from, date_to=payload.date_to
        )
        attachments = attachments_for_items(db, [item.id for item, _ in rows]) if payload.include_attachments else {}
        records = [
            export_record(
                item,
                space_name,
                attachments.get(item.id, []) if payload.include_attachments else None,
            )
            for item, space_name in rows
        ]
        export_info = {
            "user_id": str(actor.id),
            "exported_at": utc_now_iso(),
            "format": payload.format,
            "total_items": len(records),
            "include_attachments": payload.include_attachments,
        }
        body = render_export(payload.format, records, export_info)

    record_activity(
        db,
        request,
        user_id=actor.id,
        action=AuditAction.EXPORT_DATA,
        resource_type="export",
        details={"format": payload.format, "item_count": len(records), "space_count": len(space_ids)},
    )
    db.commit()
    filename = export_filename(payload.format)
    return Response(
        content=body,
        media_type=MEDIA_TYPE_BY_FORMAT[payload.format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
