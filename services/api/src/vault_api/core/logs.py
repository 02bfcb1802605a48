"""日志初始化与内存日志缓冲。"""

from collections import deque
from datetime import datetime, timezone
import logging
from threading import Lock
from typing import Any

from vault_api.core.config import Settings

ROOT_LOGGER_NAME = "vault_api"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# 对外暴露的级别名，与 logging 数值级别一一对应。
LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


class LogBuffer(logging.Handler):
    """保留最近 N 条日志的环形缓冲，供 /metrics 查询。"""

    def __init__(self, capacity: int = 1000) -> None:
        super().__init__(level=logging.DEBUG)
        self._entries: deque[dict[str, Any]] = deque(maxlen=capacity)
        self._entries_lock = Lock()

    def emit(self, record: logging.LogRecord) -> None:
        context = getattr(record, "context", None)
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": _level_name(record.levelno),
            "logger": record.name,
            "message": record.getMessage(),
            "context": dict(context) if isinstance(context, dict) else {},
        }
        with self._entries_lock:
            self._entries.append(entry)

    def get_logs(self, level: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """按最低级别过滤并返回最近 ``limit`` 条日志。"""
        threshold = LEVEL_NAMES.get((level or "debug").lower(), logging.DEBUG)
        with self._entries_lock:
            entries = [item for item in self._entries if LEVEL_NAMES[item["level"]] >= threshold]
        if limit <= 0:
            return []
        return entries[-limit:]

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def setup_logging(settings: Settings) -> LogBuffer:
    """初始化日志输出格式与级别，并挂载内存缓冲。"""
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(settings.log_level)
    # 重复创建应用时替换旧缓冲，避免日志重复写入。
    for handler in list(app_logger.handlers):
        if isinstance(handler, LogBuffer):
            app_logger.removeHandler(handler)

    buffer = LogBuffer(capacity=settings.log_buffer_size)
    app_logger.addHandler(buffer)
    return buffer


def audit(logger: logging.Logger, action: str, **context: Any) -> None:
    """记录审计事件。"""
    logger.info("AUDIT: %s", action, extra={"context": {**context, "audit": True, "action": action}})


def performance(logger: logging.Logger, operation: str, duration_ms: float, **context: Any) -> None:
    """记录操作耗时。"""
    logger.info(
        "PERF: %s took %.2fms",
        operation,
        duration_ms,
        extra={"context": {**context, "operation": operation, "duration_ms": round(duration_ms, 2)}},
    )
