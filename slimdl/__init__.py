"""
SlimDL - 带优先级的并发下载请求队列
"""

from slimdl.download import (
    DownloadRequest,
    DownloadStatus,
    HttpTransfer,
    Priority,
    QueueManager,
    StatusListener,
)
from slimdl.exceptions import SlimDLError

__version__ = "0.1.0"

__all__ = [
    "DownloadRequest",
    "DownloadStatus",
    "HttpTransfer",
    "Priority",
    "QueueManager",
    "SlimDLError",
    "StatusListener",
    "__version__",
]
