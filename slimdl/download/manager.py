"""
队列管理器

持有请求登记表和排序队列，分配序列号，管理调度池，
对外提供提交、查询、取消、批量清空与生命周期控制。
"""

import itertools
import threading
from dataclasses import dataclass
from typing import Optional, Union

from loguru import logger

from slimdl.download.dispatcher import DEFAULT_POOL_SIZE, DispatcherPool
from slimdl.download.queue import RequestQueue
from slimdl.download.registry import RequestRegistry
from slimdl.download.request import (
    DownloadRequest,
    DownloadStatus,
    Priority,
    StatusListener,
)
from slimdl.download.transfer import Transfer


@dataclass
class DownloadStats:
    """下载统计"""

    submitted: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0


class QueueManager:
    """下载队列管理器"""

    def __init__(
        self,
        transfer: Transfer,
        pool_size: int = DEFAULT_POOL_SIZE,
        join_timeout: Optional[float] = 5.0,
        poll_interval: float = 0.5,
    ):
        self.join_timeout = join_timeout
        self.registry = RequestRegistry()
        self.queue = RequestQueue()
        self.pool = DispatcherPool(
            self, self.queue, transfer, size=pool_size, poll_interval=poll_interval
        )
        self.stats = DownloadStats()

        self._sequence = itertools.count(1)
        self._sequence_lock = threading.Lock()
        self._stats_lock = threading.Lock()

    def next_download_id(self) -> int:
        """生成单调递增、不重复的序列号"""
        with self._sequence_lock:
            return next(self._sequence)

    def submit(self, request: DownloadRequest) -> int:
        """
        提交请求，立即返回下载 ID，不等待传输完成

        Raises:
            RequestStateError: 请求已属于其他管理器或已分配过 ID
        """
        request.bind(self)
        download_id = self.next_download_id()
        request.download_id = download_id

        self.registry.add(request)
        self.queue.push(request)

        with self._stats_lock:
            self.stats.submitted += 1
        logger.debug(
            f"[队列] #{download_id} '{request.filename}' 已加入下载队列 "
            f"(优先级 {request.priority})"
        )
        return download_id

    def enqueue(
        self,
        url: str,
        destination: Optional[str] = None,
        filename: Optional[str] = None,
        sha1: Optional[str] = None,
        priority: Union[Priority, int] = Priority.NORMAL,
        listener: Optional[StatusListener] = None,
    ) -> int:
        """构造请求并提交"""
        request = DownloadRequest(
            url,
            destination=destination,
            filename=filename,
            sha1=sha1,
            priority=priority,
            listener=listener,
        )
        return self.submit(request)

    def query(self, download_id: int) -> DownloadStatus:
        """查询请求状态，未知或已完成移除的 ID 返回 NOT_FOUND"""
        request = self.registry.find(download_id)
        if request is None:
            return DownloadStatus.NOT_FOUND
        return request.status

    def cancel(self, download_id: int) -> bool:
        """
        取消请求

        只设置取消标志，请求仍由调度线程取出并经 finish 移除。

        Returns:
            False 如果 ID 未知
        """
        found = []

        def _cancel(request: DownloadRequest):
            if request.download_id == download_id:
                request.cancel()
                found.append(request)

        self.registry.for_each(_cancel)
        if not found:
            logger.debug(f"[取消] #{download_id} 不存在")
            return False
        logger.info(f"[取消] #{download_id} 已请求取消")
        return True

    def cancel_all(self) -> None:
        """
        停止调度池并清空登记表和排序队列

        不会通知正在执行的传输，它们会继续运行到结束，之后的 finish 为空操作。
        """
        self.stop()
        in_flight = [
            r.download_id
            for r in self.registry.snapshot()
            if r.status == DownloadStatus.RUNNING
        ]
        dropped = self.queue.clear()
        cleared = self.registry.clear()
        if in_flight:
            logger.warning(f"[取消] 以下请求的传输未被通知取消: {in_flight}")
        logger.info(f"[取消] 已清空 {cleared} 个请求（队列中 {dropped} 个）")

    def finish(self, request: DownloadRequest) -> None:
        """调度线程完成请求后调用，重复调用为空操作"""
        if not self.registry.remove(request):
            logger.debug(f"[完成] #{request.download_id} 已不在登记表中")
            return

        status = request.status
        with self._stats_lock:
            if status == DownloadStatus.FINISHED:
                self.stats.completed += 1
            elif status == DownloadStatus.CANCELLED:
                self.stats.cancelled += 1
            elif status == DownloadStatus.FAILED:
                self.stats.failed += 1
        logger.debug(f"[完成] #{request.download_id} 已移除，剩余 {len(self.registry)} 个")

    def start(self) -> None:
        """启动调度池，已有的调度线程会先被停止"""
        self.pool.start()

    def stop(self) -> None:
        """停止调度池，正在执行的传输不会被中断"""
        logger.debug("[停止] 正在停止调度池...")
        self.pool.stop(self.join_timeout)
        logger.debug("[停止] 调度池已停止")

    @property
    def is_running(self) -> bool:
        return self.pool.is_running

    def wait_until_complete(self, timeout: Optional[float] = None) -> bool:
        """等待所有请求完成，超时返回 False"""
        return self.registry.wait_until_empty(timeout)

    def get_stats(self) -> DownloadStats:
        """获取下载统计快照"""
        with self._stats_lock:
            return DownloadStats(**vars(self.stats))

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
