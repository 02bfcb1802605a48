"""服务层能力导出集合。"""

from vault_api.services.audit import client_ip, record_activity
from vault_api.services.authorization import (
    Actor,
    WriteMode,
    accessible_space_ids,
    ensure_space_read_access,
    ensure_space_write_access,
    load_space,
    resolve_write_mode,
)
from vault_api.services.cache import CacheManager
from vault_api.services.container import AppServices, get_services
from vault_api.services.moderation import (
    approve_edit_request,
    list_revisions,
    reject_edit_request,
    revert_item,
    submit_edit_request,
)
from vault_api.services.query import build_query, execute_with_cache
from vault_api.services.rate_limit import RateLimiter, RateLimitResult

__all__ = [
    "Actor",
    "AppServices",
    "CacheManager",
    "RateLimiter",
    "RateLimitResult",
    "WriteMode",
    "accessible_space_ids",
    "approve_edit_request",
    "build_query",
    "client_ip",
    "ensure_space_read_access",
    "ensure_space_write_access",
    "execute_with_cache",
    "get_services",
    "list_revisions",
    "load_space",
    "record_activity",
    "reject_edit_request",
    "resolve_write_mode",
    "revert_item",
    "submit_edit_request",
]
