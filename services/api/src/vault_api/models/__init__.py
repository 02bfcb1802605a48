"""ORM 模型导出集合。"""

from vault_api.models.activity import ActivityLog
from vault_api.models.item import Attachment, EditRequest, Item, Revision
from vault_api.models.space import Category, Space
from vault_api.models.user import InviteCode, User, UserCredential

__all__ = [
    "ActivityLog",
    "Attachment",
    "Category",
    "EditRequest",
    "InviteCode",
    "Item",
    "Revision",
    "Space",
    "User",
    "UserCredential",
]
