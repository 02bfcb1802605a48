"""操作耗时统计。"""

from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
import logging
from threading import Lock
from time import perf_counter

from vault_api.core.logs import performance

logger = logging.getLogger("vault_api.metrics")


class PerformanceMonitor:
    """按操作名聚合最近 N 次耗时样本。"""

    def __init__(self, window_size: int = 100) -> None:
        self.window_size = window_size
        self._samples: dict[str, deque[float]] = {}
        self._lock = Lock()

    def record(self, operation: str, duration_ms: float) -> None:
        with self._lock:
            samples = self._samples.get(operation)
            if samples is None:
                samples = deque(maxlen=self.window_size)
                self._samples[operation] = samples
            samples.append(duration_ms)

    def start_timer(self, operation: str) -> Callable[[], float]:
        """开始计时，调用返回的函数结束计时并返回毫秒数。"""
        started = perf_counter()

        def _stop() -> float:
            duration_ms = (perf_counter() - started) * 1000
            self.record(operation, duration_ms)
            return duration_ms

        return _stop

    @contextmanager
    def measure(self, operation: str) -> Iterator[None]:
        """以上下文方式统计代码块耗时，异常同样计入样本。"""
        stop = self.start_timer(operation)
        try:
            yield
        finally:
            duration_ms = stop()
            performance(logger, operation, duration_ms)

    def get_metrics(self, operation: str) -> dict[str, float] | None:
        with self._lock:
            samples = list(self._samples.get(operation) or ())
        if not samples:
            return None
        return {
            "avg": round(sum(samples) / len(samples), 3),
            "min": round(min(samples), 3),
            "max": round(max(samples), 3),
            "count": len(samples),
        }

    def get_all_metrics(self) -> dict[str, dict[str, float]]:
        with self._lock:
            operations = list(self._samples)
        result = {}
        for operation in operations:
            metrics = self.get_metrics(operation)
            if metrics is not None:
                result[operation] = metrics
        return result

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()
