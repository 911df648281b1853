import pytest

pytest.importorskip("PySide6.QtCore")

import minimago.batch as batch_mod  # noqa: E402
from minimago.worker import ProcessController, ProcessWorker  # noqa: E402


def _fake_handler(req, config):
    if req.get("fail"):
        return {"success": False, "error": {"code": "PROCESS_ERROR", "kind": "InputNotFound", "message": "x"}}
    return {"success": True, "data": {"outputPath": "out"}}


@pytest.fixture(autouse=True)
def _fake_pipeline(monkeypatch):
    monkeypatch.setattr(batch_mod, "handle_process_request", _fake_handler)


def test_worker_reports_progress_and_results():
    worker = ProcessWorker([{"inputPath": "a"}, {"inputPath": "b", "fail": True}, {"inputPath": "c"}], max_workers=1)
    progress, items, finished = [], [], []
    worker.progress.connect(lambda done, total: progress.append((done, total)))
    worker.item_done.connect(lambda index, env: items.append((index, env["success"])))
    worker.finished.connect(lambda ok, total: finished.append((ok, total)))

    # run synchronously on this thread
    worker.run()

    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert sorted(items) == [(0, True), (1, False), (2, True)]
    assert finished == [(2, 3)]


def test_worker_empty_batch():
    worker = ProcessWorker([])
    finished = []
    worker.finished.connect(lambda ok, total: finished.append((ok, total)))
    worker.run()
    assert finished == [(0, 0)]


def test_worker_cancel_before_first_result():
    worker = ProcessWorker([{"inputPath": "a"}, {"inputPath": "b"}], max_workers=1)
    canceled, finished = [], []
    worker.canceled.connect(lambda: canceled.append(True))
    worker.finished.connect(lambda ok, total: finished.append((ok, total)))
    worker.cancel()
    worker.run()
    assert canceled == [True]
    assert finished == []


def test_controller_runs_worker_thread():
    controller = ProcessController()
    worker = controller.start([{"inputPath": "a"}])
    assert worker.wait(5000)
    controller.cancel()
    assert controller.is_running() is False
