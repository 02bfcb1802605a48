"""路由模块导出集合。"""

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

__all__ = [
    "admin",
    "auth",
    "bookmarklet",
    "edit_requests",
    "export",
    "files",
    "health",
    "invites",
    "items",
    "metrics",
    "search",
    "spaces",
]
