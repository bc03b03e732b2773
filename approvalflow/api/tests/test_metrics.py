from datetime import datetime, timedelta, timezone

from prometheus_client import REGISTRY

from approvalflow.observability.metrics import record_decision_latency


def _latency_sum():
    return REGISTRY.get_sample_value("approval_decision_latency_seconds_sum") or 0.0


def test_decision_latency_converts_offsets_to_utc():
    before = _latency_sum()

    # 12:00 at UTC+2 is 10:00 UTC
    created_at = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    record_decision_latency(created_at, datetime(2026, 1, 1, 11, 0))

    assert _latency_sum() - before == 3600.0


def test_decision_latency_naive_timestamps():
    before = _latency_sum()

    record_decision_latency(datetime(2026, 1, 1, 9, 0), datetime(2026, 1, 1, 9, 30))

    assert _latency_sum() - before == 1800.0
