"""输入清洗与校验规则。"""

import re
from collections.abc import Iterable
from typing import Any

MAX_TEXT_LENGTH = 1000
MAX_TAGS = 20
MAX_TAG_LENGTH = 50

INVITE_CODE_PATTERN = re.compile(r"^[A-Z0-9-]+$")
DISPLAY_NAME_PATTERN = re.compile(r"^[^\W\d_]+(?:[ '\-][^\W\d_]+)*$")
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
)


def sanitize_string(value: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """去除首尾空白并截断到最大长度。"""
    return value.strip()[:max_length].strip()


def sanitize_optional(value: str | None, max_length: int = MAX_TEXT_LENGTH) -> str | None:
    if value is None:
        return None
    cleaned = sanitize_string(value, max_length)
    return cleaned or None


def sanitize_tags(tags: Iterable[str] | None) -> list[str]:
    """规范化标签：小写、去空白、截断、去重（保留首次出现顺序），最多 20 个。"""
    result: list[str] = []
    seen: set[str] = set()
    for raw in tags or ():
        tag = str(raw).strip().lower()[:MAX_TAG_LENGTH].strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
        if len(result) >= MAX_TAGS:
            break
    return result


def split_tags(value: str | None) -> list[str]:
    """解析逗号分隔的标签查询参数。"""
    if not value:
        return []
    return sanitize_tags(value.split(","))


def password_problems(password: str) -> list[str]:
    """返回密码不满足的规则列表，空列表表示通过。"""
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters")
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            problems.append(message)
    return problems


def format_validation_errors(
    errors: Iterable[dict[str, Any]],
    *,
    skip: Iterable[str] = ("body", "query", "path", "form"),
) -> dict[str, list[str]]:
    """将 pydantic 错误列表按字段路径聚合，忽略参数来源前缀。"""
    skipped = set(skip)
    formatted: dict[str, list[str]] = {}
    for err in errors:
        path = ".".join(str(item) for item in err.get("loc", ()) if item not in skipped)
        formatted.setdefault(path or "_root", []).append(str(err.get("msg")))
    return formatted
