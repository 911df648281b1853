"""Qt adapters for running a batch off the GUI thread.

The host window hands a list of requests to `ProcessController.start()` and
listens to its signals; nothing here touches widgets.
"""

from __future__ import annotations

from collections.abc import Sequence

from PySide6.QtCore import QObject, QThread, Signal

from .batch import process_batch
from .config import DEFAULT_CONFIG, ProcessorConfig
from .logger import get_logger

_logger = get_logger("worker")


class ProcessWorker(QThread):
    """Worker thread that runs a batch of requests through the pipeline."""

    progress = Signal(int, int)  # completed, total
    item_done = Signal(int, object)  # request index, envelope dict
    finished = Signal(int, int)  # succeeded, total
    canceled = Signal()
    error = Signal(str)

    def __init__(
        self,
        requests: Sequence[object],
        max_workers: int | None = None,
        config: ProcessorConfig = DEFAULT_CONFIG,
    ):
        super().__init__()
        self.requests = list(requests)
        self.max_workers = max_workers
        self.config = config
        self._cancel_requested = False

    def run(self) -> None:
        total = len(self.requests)
        if total == 0:
            self.finished.emit(0, 0)
            return

        succeeded = 0
        completed = 0
        batch = process_batch(self.requests, self.max_workers, self.config)
        try:
            for index, envelope in batch:
                if self._cancel_requested:
                    self.canceled.emit()
                    return

                self.item_done.emit(index, envelope)
                if envelope.get("success"):
                    succeeded += 1
                completed += 1
                self.progress.emit(completed, total)
        except Exception as ex:
            _logger.error("batch failed: %s", ex, exc_info=True)
            self.error.emit(f"Batch failed: {ex}")
            return
        finally:
            batch.close()

        self.finished.emit(succeeded, total)

    def cancel(self) -> None:
        self._cancel_requested = True


class ProcessController(QObject):
    """Owns at most one running ProcessWorker and relays its signals."""

    progress = Signal(int, int)
    item_done = Signal(int, object)
    finished = Signal(int, int)
    canceled = Signal()
    error = Signal(str)

    def __init__(self, config: ProcessorConfig = DEFAULT_CONFIG):
        super().__init__()
        self.config = config
        self._worker: ProcessWorker | None = None

    def start(self, requests: Sequence[object], max_workers: int | None = None) -> ProcessWorker:
        """Start processing `requests`, cancelling any batch still running."""
        self.cancel()

        worker = ProcessWorker(requests, max_workers=max_workers, config=self.config)
        worker.progress.connect(self.progress.emit)
        worker.item_done.connect(self.item_done.emit)
        worker.finished.connect(self.finished.emit)
        worker.finished.connect(self._on_worker_finished)
        worker.canceled.connect(self.canceled.emit)
        worker.error.connect(self.error.emit)

        self._worker = worker
        worker.start()
        return worker

    def is_running(self) -> bool:
        return self._worker is not None and self._worker.isRunning()

    def cancel(self) -> None:
        if self._worker is not None and self._worker.isRunning():
            self._worker.cancel()
            self._worker.wait(1000)  # Wait up to 1 second
        self._worker = None

    def _on_worker_finished(self) -> None:
        self._worker = None
