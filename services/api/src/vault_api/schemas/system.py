"""健康检查、运行指标与书签工具结构。"""

from typing import Any

from pydantic import Field

from vault_api.schemas.common import BaseSchema


class HealthCheckData(BaseSchema):
    """单项依赖检查结果。"""

    status: str = Field(description="检查结果（healthy/unhealthy）。")
    response_time_ms: float | None = Field(default=None, description="检查耗时（毫秒）。")
    error: str | None = Field(default=None, description="失败原因。")


class HealthReportData(BaseSchema):
    """健康报告。"""

    status: str = Field(description="总体状态（healthy/degraded/unhealthy）。")
    timestamp: str = Field(description="检查时间。")
    version: str = Field(description="服务版本。")
    environment: str = Field(description="运行环境。")
    checks: dict[str, HealthCheckData] = Field(description="各依赖检查结果。")


class MetricsData(BaseSchema):
    """运行指标。"""

    logs: list[dict[str, Any]] = Field(default_factory=list, description="最近日志。")
    performance: dict[str, dict[str, float]] = Field(default_factory=dict, description="各操作耗时统计。")
    system: dict[str, Any] = Field(default_factory=dict, description="进程信息。")


class BookmarkletData(BaseSchema):
    """书签工具。"""

    bookmarklet: str = Field(description="可拖入书签栏的 javascript: 地址。")
    endpoint: str = Field(description="网页快照采集接口地址。")
    instructions: list[str] = Field(default_factory=list, description="安装说明。")
