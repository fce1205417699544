"""
pytest 配置文件

提供测试用的传输组件、监听器和队列管理器工厂。
"""

import sys
import threading
import time
from typing import Callable, Dict, List, Optional

import pytest
from loguru import logger

from slimdl.download import DownloadRequest, QueueManager, StatusListener
from slimdl.exceptions import DownloadCancelledError


class RecordingTransfer:
    """记录执行顺序的传输组件，可用 gate 阻塞直到放行或被取消"""

    def __init__(self, fail_ids=(), gate: Optional[threading.Event] = None):
        self.calls: List[int] = []
        self.cancel_seen: Dict[int, bool] = {}
        self.fail_ids = set(fail_ids)
        self.gate = gate
        self.started = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, request: DownloadRequest) -> None:
        with self._lock:
            self.calls.append(request.download_id)
            self.cancel_seen[request.download_id] = request.is_cancelled
        self.started.set()

        if self.gate is not None:
            while not self.gate.wait(0.01):
                if request.is_cancelled:
                    break

        if request.is_cancelled:
            raise DownloadCancelledError("下载已取消")
        if request.download_id in self.fail_ids:
            raise RuntimeError(f"boom #{request.download_id}")


class RecordingListener(StatusListener):
    """记录回调的监听器"""

    def __init__(self):
        self.completed: List[int] = []
        self.failed: List[tuple] = []
        self.progress: List[tuple] = []

    def on_complete(self, request):
        self.completed.append(request.download_id)

    def on_failed(self, request, error):
        self.failed.append((request.download_id, error))

    def on_progress(self, request, downloaded, total):
        self.progress.append((downloaded, total))


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """轮询等待条件成立"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture(autouse=True)
def reset_logger():
    """CLI 测试会替换日志处理器，测试结束后恢复"""
    yield
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")


@pytest.fixture
def transfer() -> RecordingTransfer:
    return RecordingTransfer()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def make_manager():
    """创建队列管理器，测试结束时自动停止"""
    managers: List[QueueManager] = []

    def _make(transfer, pool_size: int = 1) -> QueueManager:
        manager = QueueManager(
            transfer, pool_size=pool_size, join_timeout=2.0, poll_interval=0.05
        )
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        gate = getattr(manager.pool.transfer, "gate", None)
        if gate is not None:
            gate.set()
        manager.stop()


@pytest.fixture
def manager(make_manager, transfer) -> QueueManager:
    return make_manager(transfer)
