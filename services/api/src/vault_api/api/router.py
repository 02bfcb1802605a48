"""顶层路由注册。"""

from fastapi import APIRouter

from . import (
    admin,
    auth,
    bookmarklet,
    edit_requests,
    export,
    files,
    health,
    invites,
    items,
    metrics,
    search,
    spaces,
)

api_router = APIRouter()

# 固定注册顺序，便于在线接口文档展示和问题定位。
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(spaces.router)
api_router.include_router(items.router)
api_router.include_router(search.router)
api_router.include_router(files.router)
api_router.include_router(export.router)
api_router.include_router(edit_requests.router)
api_router.include_router(admin.router)
api_router.include_router(invites.router)
api_router.include_router(metrics.router)
api_router.include_router(bookmarklet.router)
