"""数据库基础模型导出。

导入全部模型后暴露 Base，供建表脚本与测试使用 ``Base.metadata``。
"""

import vault_api.models  # noqa: F401
from vault_api.models.base import Base

__all__ = ["Base"]
