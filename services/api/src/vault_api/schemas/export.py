"""数据导出结构。"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ExportRequest(BaseModel):
    """导出请求。"""

    format: Literal["json", "csv", "markdown"] = Field(default="json", description="导出格式。")
    space_ids: list[UUID] | None = Field(default=None, max_length=100, description="限定导出的空间 ID。")
    include_attachments: bool = Field(default=False, description="是否附带附件清单。")
    date_from: datetime | None = Field(default=None, description="创建时间下限。")
    date_to: datetime | None = Field(default=None, description="创建时间上限。")

    @model_validator(mode="after")
    def check_date_range(self) -> "ExportRequest":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be later than date_to")
        return self
