"""数据导出：可导出范围与 json/csv/markdown 格式化。"""

import csv
from datetime import date
import io
import json
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from vault_api.models.enums import SpaceType
from vault_api.models.item import Attachment, Item
from vault_api.models.space import Space
from vault_api.services.authorization import Actor

CSV_HEADERS = (
    "id",
    "title",
    "content",
    "url",
    "excerpt",
    "type",
    "tags",
    "space_name",
    "is_favorite",
    "created_at",
    "updated_at",
)

EXTENSION_BY_FORMAT = {"json": "json", "csv": "csv", "markdown": "md"}
MEDIA_TYPE_BY_FORMAT = {
    "json": "application/json",
    "csv": "text/csv; charset=utf-8",
    "markdown": "text/markdown; charset=utf-8",
}


def export_filename(export_format: str, today: date | None = None) -> str:
    current = today or date.today()
    return f"vault-export-{current.isoformat()}.{EXTENSION_BY_FORMAT[export_format]}"


def export_record(item: Item, space_name: str, attachments: list[Attachment] | None = None) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": str(item.id),
        "title": item.title,
        "content": item.content,
        "url": item.url,
        "excerpt": item.excerpt,
        "type": item.type,
        "tags": list(item.tags or []),
        "space_name": space_name,
        "is_favorite": item.is_favorite,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }
    if attachments is not None:
        record["attachments"] = [
            {
                "id": str(attachment.id),
                "filename": attachment.original_filename,
                "mime_type": attachment.mime_type,
                "file_size": attachment.file_size,
                "storage_path": attachment.storage_path,
            }
            for attachment in attachments
        ]
    return record


def render_json(records: list[dict[str, Any]], export_info: dict[str, Any]) -> str:
    return json.dumps({"export_info": export_info, "items": records}, ensure_ascii=False, indent=2, default=str)


def render_csv(records: list[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADERS)
    for record in records:
        row = []
        for header in CSV_HEADERS:
            value = record.get(header)
            if header == "tags":
                value = ", ".join(value or [])
            row.append("" if value is None else value)
        writer.writerow(row)
    return buffer.getvalue()


def render_markdown(records: list[dict[str, Any]], export_info: dict[str, Any]) -> str:
    lines = [
        "# Vault Export",
        "",
        f"Exported at: {export_info['exported_at']}",
        f"Total items: {export_info['total_items']}",
        "",
    ]
    for record in records:
        lines.append(f"## {record['title']}")
        lines.append("")
        lines.append(f"- **Type:** {record['type']}")
        lines.append(f"- **Space:** {record['space_name']}")
        if record.get("url"):
            lines.append(f"- **URL:** {record['url']}")
        if record.get("tags"):
            lines.append(f"- **Tags:** {', '.join(record['tags'])}")
        lines.append(f"- **Created:** {record['created_at']}")
        lines.append("")
        if record.get("excerpt"):
            lines.append(f"> {record['excerpt']}")
            lines.append("")
        if record.get("content"):
            lines.append(record["content"])
            lines.append("")
        for attachment in record.get("attachments") or []:
            lines.append(f"- Attachment: {attachment['filename']} ({attachment['mime_type']}, {attachment['file_size']} bytes)")
        lines.append("---")
        lines.append("")
    return "\n".join(lines)


def render_export(export_format: str, records: list[dict[str, Any]], export_info: dict[str, Any]) -> str:
    if export_format == "json":
        return render_json(records, export_info)
    if export_format == "csv":
        return render_csv(records)
    return render_markdown(records, export_info)


def exportable_space_ids(db: Session, *, actor: Actor, space_ids: list[UUID] | None = None) -> list[UUID]:
    """可导出空间：自己的个人空间与可读的公共空间，可按传入 ID 进一步收窄。"""
    common_visible = Space.type == SpaceType.COMMON
    if not actor.is_admin:
        common_visible = and_(common_visible, Space.is_public.is_(True))
    stmt = (
        select(Space.id)
        .where(Space.deleted_at.is_(None))
        .where(or_(and_(Space.type == SpaceType.PERSONAL, Space.owner_id == actor.id), common_visible))
    )
    if space_ids:
        stmt = stmt.where(Space.id.in_(space_ids))
    return list(db.execute(stmt).scalars().all())
