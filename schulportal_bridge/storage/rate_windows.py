from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
import threading

WindowKey = Tuple[str, str]


@dataclass
class RateWindow:
    endpoint_key: str
    client_key: str
    count: int
    window_start: float  # clock seconds


class RateWindowStore:
    """
    进程内的限流窗口表，按 (endpoint, client) 存储。

    update() 在锁内完成读-改-写，并发请求不会少计数。
    换成分布式存储时只需实现同样的 update / prune / __len__。
    """

    def __init__(self):
        self._windows: Dict[WindowKey, RateWindow] = {}
        self._lock = threading.Lock()

    def update(
        self,
        endpoint_key: str,
        client_key: str,
        mutate: Callable[[Optional[RateWindow]], RateWindow],
    ) -> RateWindow:
        key = (endpoint_key, client_key)
        with self._lock:
            window = mutate(self._windows.get(key))
            self._windows[key] = window
            return RateWindow(window.endpoint_key, window.client_key, window.count, window.window_start)

    def get(self, endpoint_key: str, client_key: str) -> Optional[RateWindow]:
        with self._lock:
            return self._windows.get((endpoint_key, client_key))

    def prune(self, now: float, intervals: Dict[str, float]) -> int:
        """删除已闲置超过窗口期的条目，返回删除数量"""
        with self._lock:
            stale = [
                key for key, w in self._windows.items()
                if now - w.window_start >= intervals.get(w.endpoint_key, 0)
            ]
            for key in stale:
                self._windows.pop(key, None)
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
