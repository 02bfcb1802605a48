"""FastAPI 应用入口点。"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from vault_api.api.router import api_router
from vault_api.core.config import Settings, get_settings
from vault_api.db.session import engine, init_schema
from vault_api.exceptions import register_exception_handlers
from vault_api.middlewares import register_middlewares
from vault_api.services.container import AppServices


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动时按需建表，退出时释放服务连接。"""
    services: AppServices = app.state.services
    if services.settings.db_auto_create_schema:
        init_schema(engine)
    yield
    services.shutdown()


def create_app(settings: Settings | None = None, services: AppServices | None = None) -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.app_debug,
        lifespan=lifespan,
        description=(
            "邀请制多用户知识库接口。\n\n"
            "成功响应统一返回：`{success, request_id, data, meta}`；"
            "错误响应统一返回：`{success, request_id, error: {code, message, details}}`。\n"
            "通过 HttpOnly 会话 Cookie 认证，写请求需携带 `X-CSRF-Token` 请求头。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务健康检查。"},
            {"name": "auth", "description": "注册、登录、验证码与会话管理。"},
            {"name": "spaces", "description": "个人空间与公共空间。"},
            {"name": "items", "description": "条目读写、网页快照、修订历史与回滚。"},
            {"name": "search", "description": "授权范围内的全文检索。"},
            {"name": "files", "description": "文件上传、列表与批量删除。"},
            {"name": "export", "description": "数据导出（json/csv/markdown）。"},
            {"name": "edit-requests", "description": "公共空间编辑请求审核。"},
            {"name": "admin", "description": "用户审核、角色管理与邀请码。"},
            {"name": "metrics", "description": "运行日志与耗时指标（仅管理员）。"},
            {"name": "bookmarklet", "description": "浏览器书签采集工具。"},
        ],
    )
    app.state.services = (services or AppServices(settings)).init()

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
