"""
Prometheus metrics for the approval engine.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Metric definitions
approval_transitions_total = Counter(
    "approval_transitions_total",
    "Approval request transitions by action",
    labelnames=("action",),
)

approval_race_conflicts_total = Counter(
    "approval_race_conflicts_total",
    "Transitions rejected because the request changed concurrently",
)

approval_decision_latency_seconds = Histogram(
    "approval_decision_latency_seconds",
    "Seconds between request creation and its final decision",
    buckets=(60, 300, 900, 3600, 4 * 3600, 24 * 3600, 3 * 24 * 3600, 7 * 24 * 3600),
)


def record_transition(action: str) -> None:
    """Count one successful transition."""
    approval_transitions_total.labels(action=action).inc()


def record_race_conflict() -> None:
    approval_race_conflicts_total.inc()


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def record_decision_latency(created_at: datetime, decided_at: datetime) -> None:
    """Record creation-to-decision latency histogram sample."""
    try:
        latency_sec = (_as_utc(decided_at) - _as_utc(created_at)).total_seconds()
        approval_decision_latency_seconds.observe(max(latency_sec, 0.0))
    except (TypeError, ValueError) as exc:  # pragma: no cover - observability only
        logger.debug("Failed to record decision latency: %s", exc, exc_info=True)


def render_latest():
    """Return (payload, content_type) for the /metrics endpoint."""
    return generate_latest(), CONTENT_TYPE_LATEST
