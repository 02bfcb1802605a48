"""领域枚举定义。"""

from enum import StrEnum


class UserRole(StrEnum):
    """用户角色。"""

    ADMIN = "admin"  # 管理员，可直接写入公共空间并审核编辑请求。
    MEMBER = "member"  # 普通成员，写入公共空间需经审核。


class UserStatus(StrEnum):
    """用户审核状态。"""

    PENDING = "pending"  # 已注册，等待管理员审核。
    APPROVED = "approved"  # 已审核通过，可正常使用。
    SUSPENDED = "suspended"  # 已停用，禁止访问业务接口。


class SpaceType(StrEnum):
    """空间类型。"""

    PERSONAL = "personal"  # 个人空间，仅所有者可写。
    COMMON = "common"  # 公共空间，管理员直写，成员需提交编辑请求。


class ItemType(StrEnum):
    """条目类型。"""

    BOOKMARK = "bookmark"  # 网页书签或网页快照。
    NOTE = "note"  # 文本笔记。
    FILE = "file"  # 文件附件。
    SNIPPET = "snippet"  # 代码片段。


class EditRequestStatus(StrEnum):
    """编辑请求状态，仅允许 pending -> approved/rejected。"""

    PENDING = "pending"  # 等待管理员审核。
    APPROVED = "approved"  # 已通过并已写入条目。
    REJECTED = "rejected"  # 已驳回，不修改条目。


class AuditAction(StrEnum):
    """审计动作。"""

    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_APPROVED = "user_approved"
    USER_SUSPENDED = "user_suspended"
    USER_ROLE_CHANGED = "user_role_changed"
    SPACE_CREATED = "space_created"
    SPACE_UPDATED = "space_updated"
    SPACE_DELETED = "space_deleted"
    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"
    ITEM_RESTORED = "item_restored"
    FILE_UPLOADED = "file_uploaded"
    BULK_DELETE = "bulk_delete"
    EXPORT_DATA = "export_data"
    EDIT_REQUEST_CREATED = "edit_request_created"
    EDIT_REQUEST_APPROVED = "edit_request_approved"
    EDIT_REQUEST_REJECTED = "edit_request_rejected"
    INVITE_CODE_GENERATED = "invite_code_generated"
    INVITE_CODE_USED = "invite_code_used"
