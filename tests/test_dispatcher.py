"""
调度线程测试
"""

from conftest import RecordingTransfer
from slimdl.download import Dispatcher, DownloadRequest, QueueManager


def test_replaced_dispatcher_returns_request_to_queue():
    transfer = RecordingTransfer()
    manager = QueueManager(transfer, poll_interval=0.05)
    download_id = manager.enqueue("http://example.com/a.bin")

    dispatcher = Dispatcher(manager.pool, 0)
    original_poll = manager.queue.poll

    def poll_then_replaced(timeout=None):
        request = original_poll(timeout)
        # 取到请求的同时，调度池已启动新的一代
        manager.pool.generation += 1
        return request

    manager.queue.poll = poll_then_replaced
    dispatcher.run()

    assert transfer.calls == []
    assert len(manager.queue) == 1
    assert manager.queue.get_stats()["total_queued"] == 1
    assert manager.registry.find(download_id).status.value == "pending"


def test_quit_dispatcher_returns_request_to_queue():
    transfer = RecordingTransfer()
    manager = QueueManager(transfer, poll_interval=0.05)
    request = DownloadRequest("http://example.com/a.bin")
    manager.submit(request)

    dispatcher = Dispatcher(manager.pool, 0)
    original_poll = manager.queue.poll

    def poll_then_quit(timeout=None):
        polled = original_poll(timeout)
        dispatcher.quit()
        return polled

    manager.queue.poll = poll_then_quit
    dispatcher.run()

    assert transfer.calls == []
    assert manager.queue.pop() is request
