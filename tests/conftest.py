"""Pytest configuration.

The Qt worker tests need a QCoreApplication. One is created for the whole
session as early as possible and shut down at the end; environments without
PySide6 simply skip those tests.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import pytest

from minimago.config import DEFAULT_CONFIG, ProcessorConfig
from minimago.metrics import metrics

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QCoreApplication exists before collecting/running tests."""

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    global _APP

    app = QCoreApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QCoreApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    app = QCoreApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    d = tmp_path / "out"
    return d


@pytest.fixture
def config(out_dir: Path) -> ProcessorConfig:
    """Default config writing generated names into a temporary directory."""
    return dataclasses.replace(DEFAULT_CONFIG, output_dir=str(out_dir))


@pytest.fixture
def make_image(tmp_path: Path):
    """Write a solid RGB(A) image with Pillow and return its path."""
    Image = pytest.importorskip("PIL.Image")

    def _make(name: str = "src.png", size: tuple[int, int] = (40, 30), color=(255, 255, 255), mode: str = "RGB"):
        path = tmp_path / name
        Image.new(mode, size, color=color).save(path)
        return path

    return _make
