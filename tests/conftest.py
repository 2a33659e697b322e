from __future__ import annotations

import pytest

from db_server import metrics
from tests.fakes.responses import write_response_files


@pytest.fixture
def responses_dir(tmp_path):
    return write_response_files(tmp_path / "responses")


@pytest.fixture(autouse=True)
def reset_metrics():
    for counter in (
        metrics.requests_total,
        metrics.requests_dropped_total,
        metrics.requests_rejected_total,
        metrics.response_failures_total,
    ):
        counter.value = 0
    metrics.store_keys.value = 0
    metrics.request_latency_ms.count = 0
    metrics.request_latency_ms.total_ms = 0.0
    yield
