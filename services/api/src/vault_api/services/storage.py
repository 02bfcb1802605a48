"""对象存储服务（当前为本地文件系统实现）。"""

import logging
from pathlib import Path

from vault_api.core.errors import ExternalServiceError, ValidationError

logger = logging.getLogger("vault_api.storage")


class ObjectStorage:
    """按对象键读写本地目录，对外提供公开访问地址。"""

    def __init__(self, root: str, *, public_base_url: str = "/files") -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, object_key: str) -> Path:
        root = self.root.resolve()
        target = (root / object_key).resolve()
        # 对象键必须落在存储根目录内，拒绝目录穿越。
        if root != target and root not in target.parents:
            raise ValidationError("Invalid storage path")
        return target

    def upload(self, object_key: str, content: bytes, content_type: str | None = None) -> str:
        """保存对象并返回对象键。"""
        target = self._resolve(object_key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as exc:
            raise ExternalServiceError("storage", "upload failed", context={"key": object_key}) from exc
        logger.debug("stored object key=%s size=%s type=%s", object_key, len(content), content_type)
        return object_key

    def remove(self, object_keys: list[str]) -> list[str]:
        """删除对象，返回实际删除的键；不存在的对象忽略。"""
        removed = []
        for object_key in object_keys:
            target = self._resolve(object_key)
            try:
                target.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise ExternalServiceError("storage", "remove failed", context={"key": object_key}) from exc
            removed.append(object_key)
        return removed

    def exists(self, object_key: str) -> bool:
        return self._resolve(object_key).is_file()

    def get_public_url(self, object_key: str) -> str:
        return f"{self.public_base_url}/{object_key}"
