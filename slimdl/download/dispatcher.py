"""
下载调度器

每个调度线程循环从排序队列取出一个请求，同步调用传输组件执行，
结束后回调队列管理器的 finish。调度池按代（generation）管理线程，
重新启动时先停止旧的一代，避免新旧线程混用。
"""

import threading
from typing import TYPE_CHECKING, List, Optional

from loguru import logger

from slimdl.download.queue import RequestQueue
from slimdl.download.request import DownloadRequest
from slimdl.exceptions import DownloadCancelledError

if TYPE_CHECKING:
    from slimdl.download.manager import QueueManager
    from slimdl.download.transfer import Transfer


# 默认调度线程数，1 表示顺序下载
DEFAULT_POOL_SIZE = 1


class Dispatcher(threading.Thread):
    """下载调度线程"""

    def __init__(self, pool: "DispatcherPool", index: int):
        super().__init__(
            name=f"dispatcher-{pool.generation}-{index}",
            daemon=True,
        )
        self.generation = pool.generation
        self._pool = pool
        self._quit = threading.Event()

    def quit(self) -> None:
        """通知线程在当前请求结束后退出，不会中断正在执行的传输"""
        self._quit.set()

    @property
    def quitting(self) -> bool:
        return self._quit.is_set()

    def run(self):
        logger.debug(f"[调度] {self.name} 已启动")
        while self._active():
            request = self._pool.queue.poll(self._pool.poll_interval)
            if request is None:
                continue
            if not self._active():
                # 等待期间已被新一代替换，请求交还队列
                self._pool.queue.requeue(request)
                break
            self._execute(request)
        logger.debug(f"[调度] {self.name} 已退出")

    def _active(self) -> bool:
        return not self._quit.is_set() and self.generation == self._pool.generation

    def _execute(self, request: DownloadRequest) -> None:
        try:
            request.mark_running()
            logger.info(f"[开始] #{request.download_id} {request.filename}")

            error: Optional[BaseException] = None
            try:
                self._pool.transfer(request)
            except DownloadCancelledError as e:
                error = e
            except Exception as e:
                # 单个请求失败不能让调度线程退出
                error = e
                logger.opt(exception=e).debug(f"[错误] #{request.download_id} 传输异常")
            except BaseException as e:
                error = e
                logger.opt(exception=e).warning(
                    f"[错误] #{request.download_id} 传输被中止: {type(e).__name__}"
                )

            self._report(request, error)
        finally:
            self._pool.manager.finish(request)

    def _report(self, request: DownloadRequest, error: Optional[BaseException]) -> None:
        listener = request.listener

        # 状态转换失败说明取消先一步生效
        if error is None and request.mark_finished():
            logger.success(f"[完成] #{request.download_id} {request.filename}")
            callback = getattr(listener, "on_complete", None)
            args = (request,)
        elif request.is_cancelled:
            logger.info(f"[取消] #{request.download_id} {request.filename} 已取消")
            if not isinstance(error, DownloadCancelledError):
                error = DownloadCancelledError(
                    "下载已取消", context={"download_id": request.download_id}
                )
            callback = getattr(listener, "on_failed", None)
            args = (request, error)
        else:
            request.mark_failed()
            logger.error(f"[失败] #{request.download_id} {request.filename}: {error}")
            callback = getattr(listener, "on_failed", None)
            args = (request, error)

        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"[监听] #{request.download_id} 回调执行失败")


class DispatcherPool:
    """固定大小的调度线程池"""

    def __init__(
        self,
        manager: "QueueManager",
        queue: RequestQueue,
        transfer: "Transfer",
        size: int = DEFAULT_POOL_SIZE,
        poll_interval: float = 0.5,
    ):
        if size < 1:
            raise ValueError("调度线程数必须大于 0")
        self.manager = manager
        self.queue = queue
        self.transfer = transfer
        self.size = size
        self.poll_interval = poll_interval
        self.generation = 0
        self._dispatchers: List[Dispatcher] = []
        self._lock = threading.Lock()

    def start(self) -> None:
        """启动新一代调度线程，先停止当前的一代"""
        with self._lock:
            # 旧线程只通知退出，不等待其当前传输结束
            self._stop_locked(timeout=None, wait=False)
            self.generation += 1
            fresh = [Dispatcher(self, i) for i in range(self.size)]
            self._dispatchers = [d for d in self._dispatchers if d.is_alive()] + fresh
            for dispatcher in fresh:
                dispatcher.start()
        logger.info(f"[启动] 调度池第 {self.generation} 代启动，线程数: {self.size}")

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        停止所有调度线程

        Args:
            timeout: 每个线程的最长等待秒数，None 表示一直等待
        """
        with self._lock:
            self._stop_locked(timeout)

    def _stop_locked(self, timeout: Optional[float], wait: bool = True) -> None:
        if not self._dispatchers:
            return
        for dispatcher in self._dispatchers:
            dispatcher.quit()
        self.queue.wake_all()
        if not wait:
            return

        current = threading.current_thread()
        for dispatcher in self._dispatchers:
            if dispatcher is current or not dispatcher.is_alive():
                continue
            dispatcher.join(timeout)
            if dispatcher.is_alive():
                logger.warning(f"[停止] {dispatcher.name} 仍在执行传输，稍后退出")

        self._dispatchers = [d for d in self._dispatchers if d.is_alive()]

    def alive_count(self) -> int:
        """存活的调度线程数（包括正在退出的）"""
        with self._lock:
            return sum(1 for d in self._dispatchers if d.is_alive())

    @property
    def is_running(self) -> bool:
        with self._lock:
            return any(
                d.is_alive() and not d.quitting and d.generation == self.generation
                for d in self._dispatchers
            )
