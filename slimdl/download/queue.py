"""
下载请求排序队列

基于二叉堆和条件变量实现的线程安全优先级队列。
排序键为 (priority, download_id)：优先级数值小的先出队，同优先级按提交顺序先进先出。
"""

import heapq
import threading
from typing import List, Optional, Tuple

from slimdl.download.request import DownloadRequest


class RequestQueue:
    """下载请求队列"""

    def __init__(self):
        self._heap: List[Tuple[int, int, DownloadRequest]] = []
        self._not_empty = threading.Condition(threading.Lock())
        self._total_queued = 0

    def push(self, request: DownloadRequest) -> None:
        """添加请求，request 必须已分配 download_id"""
        if request.download_id is None:
            raise ValueError("请求尚未分配 download_id")
        with self._not_empty:
            heapq.heappush(self._heap, (request.priority, request.download_id, request))
            self._total_queued += 1
            self._not_empty.notify()

    def requeue(self, request: DownloadRequest) -> None:
        """放回已取出但未执行的请求，不计入入队总数"""
        with self._not_empty:
            heapq.heappush(self._heap, (request.priority, request.download_id, request))
            self._not_empty.notify()

    def pop(self) -> DownloadRequest:
        """阻塞直到有请求可用，取出优先级最高的请求"""
        with self._not_empty:
            while not self._heap:
                self._not_empty.wait()
            return heapq.heappop(self._heap)[2]

    def poll(self, timeout: Optional[float] = None) -> Optional[DownloadRequest]:
        """
        等待并取出一个请求

        Args:
            timeout: 最长等待秒数

        Returns:
            请求；超时或被 wake_all 唤醒且队列为空时返回 None
        """
        with self._not_empty:
            if not self._heap:
                self._not_empty.wait(timeout)
            if not self._heap:
                return None
            return heapq.heappop(self._heap)[2]

    def wake_all(self) -> None:
        """唤醒所有等待中的 poll 调用"""
        with self._not_empty:
            self._not_empty.notify_all()

    def qsize(self) -> int:
        """获取队列大小"""
        with self._not_empty:
            return len(self._heap)

    def __len__(self) -> int:
        return self.qsize()

    def empty(self) -> bool:
        """检查队列是否为空"""
        return self.qsize() == 0

    def get_stats(self) -> dict:
        """获取队列统计"""
        with self._not_empty:
            return {
                "pending": len(self._heap),
                "total_queued": self._total_queued,
            }

    def clear(self) -> int:
        """清空队列，返回被丢弃的请求数"""
        with self._not_empty:
            dropped = len(self._heap)
            self._heap.clear()
            return dropped
