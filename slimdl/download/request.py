"""
下载请求

定义优先级、请求状态、状态监听器以及单个下载请求的生命周期。
"""

import os
import threading
from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import unquote, urlparse

from slimdl.exceptions import RequestStateError


class Priority(Enum):
    """下载优先级（数值越小越先调度）"""

    IMMEDIATE = 0
    HIGH = 1
    NORMAL = 2
    LOW = 3


class DownloadStatus(Enum):
    """下载请求状态"""

    PENDING = "pending"
    RUNNING = "running"
    CANCELLED = "cancelled"
    FINISHED = "finished"
    FAILED = "failed"
    # 仅用于查询结果，表示请求未知或已完成并移除
    NOT_FOUND = "not_found"

    @property
    def is_terminal(self) -> bool:
        return self in (
            DownloadStatus.CANCELLED,
            DownloadStatus.FINISHED,
            DownloadStatus.FAILED,
        )


class StatusListener:
    """
    下载状态监听器

    子类按需覆盖回调即可，回调在调度线程中执行。
    """

    def on_complete(self, request: "DownloadRequest") -> None:
        """下载完成"""

    def on_failed(self, request: "DownloadRequest", error: Exception) -> None:
        """下载失败或被取消"""

    def on_progress(
        self, request: "DownloadRequest", downloaded: int, total: int
    ) -> None:
        """下载进度更新（total 未知时为 0）"""


def _filename_from_url(url: str) -> str:
    path = unquote(urlparse(url).path)
    return os.path.basename(path.rstrip("/")) or "download"


class DownloadRequest:
    """下载请求"""

    def __init__(
        self,
        url: str,
        destination: Optional[str] = None,
        filename: Optional[str] = None,
        sha1: Optional[str] = None,
        priority: Union[Priority, int] = Priority.NORMAL,
        listener: Optional[StatusListener] = None,
    ):
        self.url = url
        self.destination = destination
        self.filename = filename or _filename_from_url(url)
        self.sha1 = sha1
        self.priority = priority.value if isinstance(priority, Priority) else int(priority)
        self.listener = listener

        self._download_id: Optional[int] = None
        self._manager: Any = None
        self._status = DownloadStatus.PENDING
        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"DownloadRequest(id={self._download_id}, priority={self.priority}, "
            f"status={self._status.value}, url={self.url!r})"
        )

    @property
    def download_id(self) -> Optional[int]:
        """下载 ID（即序列号），提交前为 None"""
        return self._download_id

    @download_id.setter
    def download_id(self, value: int) -> None:
        with self._lock:
            if self._download_id is not None:
                raise RequestStateError(
                    "下载 ID 只能分配一次",
                    context={"download_id": self._download_id, "new_id": value},
                )
            self._download_id = value

    @property
    def manager(self):
        """请求所属的队列管理器"""
        return self._manager

    def bind(self, manager) -> None:
        """将请求绑定到队列管理器，一个请求终生只属于一个管理器"""
        with self._lock:
            if self._manager is not None and self._manager is not manager:
                raise RequestStateError(
                    "请求已属于其他队列管理器",
                    context={"download_id": self._download_id, "url": self.url},
                )
            self._manager = manager

    @property
    def status(self) -> DownloadStatus:
        with self._lock:
            return self._status

    @property
    def is_cancelled(self) -> bool:
        """取消标志，传输过程需要定期检查"""
        return self._cancelled.is_set()

    def cancel(self) -> bool:
        """
        请求取消

        设置取消标志，状态从 PENDING/RUNNING 变为 CANCELLED。

        Returns:
            False 如果请求已处于终止状态
        """
        with self._lock:
            if self._status.is_terminal:
                return False
            self._cancelled.set()
            self._status = DownloadStatus.CANCELLED
            return True

    def mark_running(self) -> bool:
        """PENDING -> RUNNING"""
        return self._transition(DownloadStatus.RUNNING, DownloadStatus.PENDING)

    def mark_finished(self) -> bool:
        """RUNNING -> FINISHED，已取消的请求保持 CANCELLED"""
        return self._transition(DownloadStatus.FINISHED, DownloadStatus.RUNNING)

    def mark_failed(self) -> bool:
        """PENDING/RUNNING -> FAILED"""
        return self._transition(
            DownloadStatus.FAILED, DownloadStatus.PENDING, DownloadStatus.RUNNING
        )

    def _transition(self, target: DownloadStatus, *allowed: DownloadStatus) -> bool:
        with self._lock:
            if self._status not in allowed:
                return False
            self._status = target
            return True
