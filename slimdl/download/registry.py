"""
请求登记表

记录系统中所有排队或执行中的请求，是状态查询和取消的唯一依据。
所有读写都在同一把锁内完成。
"""

import threading
from typing import Callable, Dict, List, Optional

from slimdl.download.request import DownloadRequest


class RequestRegistry:
    """请求登记表"""

    def __init__(self):
        self._requests: Dict[int, DownloadRequest] = {}
        self._changed = threading.Condition(threading.Lock())

    def add(self, request: DownloadRequest) -> None:
        with self._changed:
            self._requests[request.download_id] = request

    def remove(self, request: DownloadRequest) -> bool:
        """
        移除请求

        Returns:
            True 如果请求被移除；请求不存在时为 False（幂等）
        """
        with self._changed:
            if self._requests.get(request.download_id) is not request:
                return False
            del self._requests[request.download_id]
            if not self._requests:
                self._changed.notify_all()
            return True

    def find(self, download_id: int) -> Optional[DownloadRequest]:
        """按 ID 查找请求，未知或已移除时返回 None"""
        with self._changed:
            return self._requests.get(download_id)

    def for_each(self, fn: Callable[[DownloadRequest], None]) -> None:
        """在锁内对每个请求执行 fn"""
        with self._changed:
            for request in list(self._requests.values()):
                fn(request)

    def snapshot(self) -> List[DownloadRequest]:
        """按 ID 顺序返回当前请求快照"""
        with self._changed:
            return [self._requests[k] for k in sorted(self._requests)]

    def clear(self) -> int:
        """清空登记表，返回被清除的请求数"""
        with self._changed:
            count = len(self._requests)
            self._requests.clear()
            self._changed.notify_all()
            return count

    def wait_until_empty(self, timeout: Optional[float] = None) -> bool:
        """阻塞直到登记表为空，超时返回 False"""
        with self._changed:
            return self._changed.wait_for(lambda: not self._requests, timeout)

    def __len__(self) -> int:
        with self._changed:
            return len(self._requests)

    def __contains__(self, download_id: int) -> bool:
        with self._changed:
            return download_id in self._requests
