"""书签工具接口。"""

import json
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from vault_api.schemas.common import ErrorResponse, SuccessResponse
from vault_api.schemas.system import BookmarkletData
from vault_api.services.container import AppServices, get_services
from vault_api.utils.response import success

router = APIRouter(prefix="/bookmarklet", tags=["bookmarklet"])

# 先取 CSRF 令牌，再把当前页面提交到快照接口。
_BOOKMARKLET_TEMPLATE = (
    "(function(){"
    "var base=%(base)s,api=%(api)s,space=%(space)s||prompt('Vault space id');"
    "if(!space){return;}"
    "var sel=String(window.getSelection()||'').trim();"
    "fetch(base+api+'/auth/csrf',{credentials:'include'})"
    ".then(function(r){return r.json();})"
    ".then(function(body){return fetch(base+api+'/items/snapshot',{"
    "method:'POST',credentials:'include',"
    "headers:{'Content-Type':'application/json',%(header)s:body.data.csrf_token},"
    "body:JSON.stringify({url:location.href,title:document.title||location.hostname,"
    "excerpt:sel?sel.slice(0,500):null,html:document.documentElement.outerHTML,space_id:space})});})"
    ".then(function(r){alert(r.ok?'Saved to Vault':'Failed to save to Vault');})"
    ".catch(function(){alert('Failed to save to Vault');});"
    "})();"
)


def build_bookmarklet(base_url: str, *, api_prefix: str, csrf_header: str, space_id: UUID | None = None) -> str:
    """生成可拖入书签栏的 ``javascript:`` 地址。"""
    code = _BOOKMARKLET_TEMPLATE % {
        "base": json.dumps(base_url.rstrip("/")),
        "api": json.dumps(api_prefix),
        "space": json.dumps(str(space_id) if space_id else ""),
        "header": json.dumps(csrf_header),
    }
    return "javascript:" + quote(code, safe="(){}[];,:'=+!|.&?/")


@router.get(
    "",
    summary="获取书签工具",
    description="返回网页采集书签的 javascript: 地址，点击后将当前页面保存为快照条目。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BookmarkletData],
    responses={400: {"model": ErrorResponse}},
)
def get_bookmarklet(
    request: Request,
    base_url: str | None = Query(default=None, max_length=2048, description="服务访问地址，缺省使用请求来源。"),
    space_id: UUID | None = Query(default=None, description="默认保存到的空间 ID。"),
    services: AppServices = Depends(get_services),
):
    """获取书签工具。"""
    settings = services.settings
    base = base_url or request.headers.get("origin") or str(request.base_url)
    base = base.rstrip("/")
    data = {
        "bookmarklet": build_bookmarklet(
            base,
            api_prefix=settings.api_prefix,
            csrf_header=settings.csrf_header_name,
            space_id=space_id,
        ),
        "endpoint": f"{base}{settings.api_prefix}/items/snapshot",
        "instructions": [
            "Drag the bookmarklet link to your bookmarks bar.",
            "Sign in to the vault in the same browser.",
            "Click the bookmark on any page to save it.",
        ],
    }
    return success(request, data)
