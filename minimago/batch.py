"""Run several independent requests concurrently.

Requests share nothing, so each runs on its own pool thread; libvips releases
the GIL while decoding and encoding.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any

from .config import DEFAULT_CONFIG, ProcessorConfig
from .logger import get_logger
from .processor import handle_process_request

_logger = get_logger("batch")


def default_workers(total: int) -> int:
    return max(1, min(total, os.cpu_count() or 1))


def process_batch(
    requests: Sequence[object],
    max_workers: int | None = None,
    config: ProcessorConfig = DEFAULT_CONFIG,
) -> Iterator[tuple[int, dict[str, Any]]]:
    """Yield (index, envelope) pairs in completion order.

    Closing the generator early cancels requests that have not started yet.
    """
    total = len(requests)
    if total == 0:
        return

    workers = max_workers or default_workers(total)
    _logger.debug("batch: %d requests on %d workers", total, workers)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="minimago") as executor:
        future_to_index: dict[Future, int] = {
            executor.submit(handle_process_request, req, config): i for i, req in enumerate(requests)
        }
        try:
            for future in as_completed(future_to_index):
                yield future_to_index[future], future.result()
        finally:
            for f in future_to_index:
                f.cancel()


def process_all(
    requests: Sequence[object],
    max_workers: int | None = None,
    config: ProcessorConfig = DEFAULT_CONFIG,
) -> list[dict[str, Any]]:
    """Process every request and return the envelopes in request order."""
    results: list[dict[str, Any]] = [{} for _ in requests]
    for index, envelope in process_batch(requests, max_workers, config):
        results[index] = envelope
    return results
