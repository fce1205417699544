"""
队列管理器测试
"""

import threading
import time

import pytest

from conftest import RecordingTransfer, wait_for
from slimdl.download import DownloadRequest, DownloadStatus, Priority, QueueManager
from slimdl.exceptions import DownloadCancelledError, RequestStateError


def _request(priority=Priority.NORMAL, listener=None, name="file.bin"):
    return DownloadRequest(
        f"http://example.com/{name}", priority=priority, listener=listener
    )


class TestSubmit:
    """提交测试"""

    def test_ids_strictly_increasing(self, manager):
        ids = [manager.submit(_request()) for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_concurrent_submits_never_repeat(self, manager):
        ids = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                download_id = manager.submit(_request())
                with lock:
                    ids.append(download_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(ids) == list(range(1, 401))
        assert len(manager.registry) == 400

    def test_submit_returns_without_dispatching(self, manager, transfer):
        download_id = manager.submit(_request())
        time.sleep(0.1)
        assert transfer.calls == []
        assert manager.query(download_id) == DownloadStatus.PENDING

    def test_enqueue_builds_request(self, manager):
        download_id = manager.enqueue("http://example.com/a.zip", priority=Priority.HIGH)
        request = manager.registry.find(download_id)
        assert request.filename == "a.zip"
        assert request.priority == Priority.HIGH.value
        assert request.manager is manager

    def test_resubmit_same_request_rejected(self, manager):
        request = _request()
        manager.submit(request)
        with pytest.raises(RequestStateError):
            manager.submit(request)

    def test_request_belongs_to_one_manager(self, make_manager, manager):
        request = _request()
        manager.submit(request)
        other = make_manager(RecordingTransfer())
        with pytest.raises(RequestStateError):
            other.submit(request)


class TestDispatchOrder:
    """调度顺序测试"""

    def test_priority_then_fifo(self, manager, transfer):
        r1 = manager.submit(_request(priority=5))
        r2 = manager.submit(_request(priority=1))
        r3 = manager.submit(_request(priority=5))

        manager.start()
        assert manager.wait_until_complete(timeout=5)
        assert transfer.calls == [r2, r1, r3]

    def test_lower_value_dispatched_first(self, manager, transfer):
        low = manager.submit(_request(priority=Priority.LOW))
        high = manager.submit(_request(priority=Priority.HIGH))

        manager.start()
        assert manager.wait_until_complete(timeout=5)
        assert transfer.calls == [high, low]

    def test_equal_priority_is_fifo(self, manager, transfer):
        ids = [manager.submit(_request()) for _ in range(10)]
        manager.start()
        assert manager.wait_until_complete(timeout=5)
        assert transfer.calls == ids

    def test_running_request_not_preempted(self, make_manager):
        gate = threading.Event()
        transfer = RecordingTransfer(gate=gate)
        manager = make_manager(transfer)

        first = manager.submit(_request(priority=Priority.LOW))
        manager.start()
        assert transfer.started.wait(5)
        urgent = manager.submit(_request(priority=Priority.IMMEDIATE))
        assert manager.query(first) == DownloadStatus.RUNNING
        assert manager.query(urgent) == DownloadStatus.PENDING

        gate.set()
        assert manager.wait_until_complete(timeout=5)
        assert transfer.calls == [first, urgent]


class TestQuery:
    """状态查询测试"""

    def test_unknown_id_not_found(self, manager):
        assert manager.query(42) == DownloadStatus.NOT_FOUND

    def test_finished_request_not_found(self, manager, listener):
        download_id = manager.submit(_request(listener=listener))
        manager.start()
        assert manager.wait_until_complete(timeout=5)
        assert manager.query(download_id) == DownloadStatus.NOT_FOUND
        assert listener.completed == [download_id]
        assert manager.get_stats().completed == 1


class TestCancel:
    """取消测试"""

    def test_cancel_unknown_id(self, manager):
        download_id = manager.submit(_request())
        assert manager.cancel(999) is False
        assert manager.query(download_id) == DownloadStatus.PENDING
        assert not manager.registry.find(download_id).is_cancelled
        assert len(manager.registry) == 1

    def test_cancel_known_id_sets_flag(self, manager):
        request = _request()
        download_id = manager.submit(request)
        assert manager.cancel(download_id) is True
        assert request.is_cancelled
        assert manager.query(download_id) == DownloadStatus.CANCELLED
        # 取消不会直接移除
        assert download_id in manager.registry
        assert len(manager.queue) == 1

    def test_cancel_before_start(self, manager, transfer, listener):
        download_id = manager.submit(_request(listener=listener))
        assert manager.cancel(download_id)

        manager.start()
        assert manager.wait_until_complete(timeout=5)

        assert transfer.cancel_seen[download_id] is True
        assert manager.query(download_id) == DownloadStatus.NOT_FOUND
        assert manager.get_stats().cancelled == 1
        assert len(listener.failed) == 1
        failed_id, error = listener.failed[0]
        assert failed_id == download_id
        assert isinstance(error, DownloadCancelledError)

    def test_cancel_running_request(self, make_manager, listener):
        transfer = RecordingTransfer(gate=threading.Event())
        manager = make_manager(transfer)
        request = _request(listener=listener)
        download_id = manager.submit(request)

        manager.start()
        assert transfer.started.wait(5)
        assert manager.cancel(download_id)
        assert manager.wait_until_complete(timeout=5)

        assert request.status == DownloadStatus.CANCELLED
        assert manager.get_stats().cancelled == 1
        assert listener.completed == []


class TestCancelAll:
    """批量清空测试"""

    def test_cancel_all_before_start(self, manager):
        ids = [manager.submit(_request()) for _ in range(3)]
        manager.cancel_all()

        assert len(manager.registry) == 0
        assert manager.queue.empty()
        assert manager.pool.alive_count() == 0
        assert all(manager.query(i) == DownloadStatus.NOT_FOUND for i in ids)

    def test_cancel_all_stops_idle_dispatchers(self, make_manager, transfer):
        manager = make_manager(transfer, pool_size=3)
        manager.start()
        assert wait_for(lambda: manager.pool.alive_count() == 3)

        manager.submit(_request())
        manager.cancel_all()

        assert manager.pool.alive_count() == 0
        assert not manager.is_running
        assert len(manager.registry) == 0

    def test_cancel_all_does_not_signal_running_transfer(self, make_manager):
        gate = threading.Event()
        transfer = RecordingTransfer(gate=gate)
        manager = make_manager(transfer)
        request = _request()
        download_id = manager.submit(request)
        manager.start()
        assert transfer.started.wait(5)

        manager.join_timeout = 0.1
        manager.cancel_all()

        assert manager.query(download_id) == DownloadStatus.NOT_FOUND
        assert not request.is_cancelled

        gate.set()
        assert wait_for(lambda: manager.pool.alive_count() == 0)
        # 传输结束后的 finish 为空操作
        assert manager.get_stats().completed == 0


class TestFinish:
    """完成回调测试"""

    def test_finish_is_idempotent(self, manager):
        request = _request()
        keep = manager.submit(_request())
        manager.submit(request)

        manager.finish(request)
        once = (manager.registry.snapshot(), manager.get_stats())
        manager.finish(request)
        twice = (manager.registry.snapshot(), manager.get_stats())

        assert once == twice
        assert [r.download_id for r in twice[0]] == [keep]

    def test_failed_transfer_keeps_worker_alive(self, make_manager, listener):
        transfer = RecordingTransfer(fail_ids={1})
        manager = make_manager(transfer)
        first = manager.submit(_request(listener=listener))
        second = manager.submit(_request(listener=listener))

        manager.start()
        assert manager.wait_until_complete(timeout=5)

        stats = manager.get_stats()
        assert stats.failed == 1
        assert stats.completed == 1
        assert [i for i, _ in listener.failed] == [first]
        assert listener.completed == [second]

    def test_aborting_transfer_still_finishes(self, make_manager, listener):
        class Abort(BaseException):
            pass

        class AbortingTransfer(RecordingTransfer):
            def __call__(self, request):
                super().__call__(request)
                if request.download_id == 1:
                    raise Abort()

        transfer = AbortingTransfer()
        manager = make_manager(transfer)
        first = manager.submit(_request(listener=listener))
        second = manager.submit(_request(listener=listener))

        manager.start()
        assert manager.wait_until_complete(timeout=5)

        assert transfer.calls == [first, second]
        assert manager.query(first) == DownloadStatus.NOT_FOUND
        assert manager.get_stats().failed == 1
        assert listener.completed == [second]
        assert isinstance(listener.failed[0][1], Abort)
        assert manager.is_running

    def test_listener_error_does_not_block_finish(self, manager):
        class BrokenListener:
            def on_complete(self, request):
                raise ValueError("listener bug")

        download_id = manager.submit(_request(listener=BrokenListener()))
        manager.start()
        assert manager.wait_until_complete(timeout=5)
        assert manager.query(download_id) == DownloadStatus.NOT_FOUND
        assert manager.is_running


class TestLifecycle:
    """生命周期测试"""

    def test_restart_replaces_workers(self, make_manager, transfer):
        manager = make_manager(transfer, pool_size=2)
        manager.start()
        manager.start()

        assert manager.pool.generation == 2
        assert wait_for(lambda: manager.pool.alive_count() == 2)

        manager.stop()
        assert manager.pool.alive_count() == 0

    def test_work_resumes_after_restart(self, manager, transfer):
        manager.start()
        manager.stop()
        download_id = manager.submit(_request())
        time.sleep(0.1)
        assert manager.query(download_id) == DownloadStatus.PENDING

        manager.start()
        assert manager.wait_until_complete(timeout=5)
        assert transfer.calls == [download_id]

    def test_context_manager(self, transfer):
        with QueueManager(transfer, poll_interval=0.05) as manager:
            manager.enqueue("http://example.com/a.bin")
            assert manager.wait_until_complete(timeout=5)
        assert manager.pool.alive_count() == 0
        assert manager.get_stats().submitted == 1

    def test_wait_until_complete_times_out(self, manager):
        manager.submit(_request())
        assert manager.wait_until_complete(timeout=0.05) is False
