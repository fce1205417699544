"""
SlimDL 下载层

包含请求模型、排序队列、登记表、调度池、队列管理器和传输组件。
"""

from slimdl.download.dispatcher import DEFAULT_POOL_SIZE, Dispatcher, DispatcherPool
from slimdl.download.manager import DownloadStats, QueueManager
from slimdl.download.queue import RequestQueue
from slimdl.download.registry import RequestRegistry
from slimdl.download.request import (
    DownloadRequest,
    DownloadStatus,
    Priority,
    StatusListener,
)
from slimdl.download.transfer import HttpTransfer, Transfer
from slimdl.download.verifier import FileVerifier

__all__ = [
    "DEFAULT_POOL_SIZE",
    "Dispatcher",
    "DispatcherPool",
    "DownloadRequest",
    "DownloadStats",
    "DownloadStatus",
    "FileVerifier",
    "HttpTransfer",
    "Priority",
    "QueueManager",
    "RequestQueue",
    "RequestRegistry",
    "StatusListener",
    "Transfer",
]
