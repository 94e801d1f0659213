"""Prometheus metrics for the Swizz call agent.

Covers live session counts, per-chunk pipeline outcomes and stage latency.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

SESSION_TOTAL = Counter(
    "swizz_sessions_total",
    "Media stream sessions closed, by final call status",
    ["final_status"],
)

CHUNKS_PROCESSED = Counter(
    "swizz_chunks_total",
    "Audio chunks run through the speech pipeline, by result",
    ["result"],
)

CHUNKS_DROPPED = Counter(
    "swizz_chunks_dropped_total",
    "Ready chunks discarded because the session queue was full",
)

STAGE_FAILURES = Counter(
    "swizz_stage_failures_total",
    "Pipeline stage failures (including timeouts)",
    ["stage"],
)

HUMAN_DETECTED = Counter(
    "swizz_human_detected_total",
    "Calls where a live representative was detected",
)

SESSIONS_REJECTED = Counter(
    "swizz_sessions_rejected_total",
    "Media stream connections refused",
    ["reason"],
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_SESSIONS = Gauge(
    "swizz_active_sessions",
    "Currently open media stream sessions",
)

# =============================================================================
# Histograms
# =============================================================================

STAGE_LATENCY = Histogram(
    "swizz_stage_latency_seconds",
    "Latency of each external pipeline stage",
    ["stage"],
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0],
)

SESSION_DURATION = Histogram(
    "swizz_session_duration_seconds",
    "Media stream session duration in seconds",
    buckets=[10, 30, 60, 120, 300, 600, 900, 1800, 3600],
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_stage_latency(stage: str, latency_ms: float | None) -> None:
    """Record a stage latency given in milliseconds."""
    if latency_ms is not None and latency_ms > 0:
        STAGE_LATENCY.labels(stage=stage).observe(latency_ms / 1000)


def record_stage_failure(stage: str) -> None:
    STAGE_FAILURES.labels(stage=stage).inc()


def record_chunk_result(result: str) -> None:
    CHUNKS_PROCESSED.labels(result=result).inc()


def record_session_closed(final_status: str, duration_seconds: float) -> None:
    """Record metrics for a closed media stream session.

    Args:
        final_status: Call status after the session was finalized
        duration_seconds: Wall time the stream was open
    """
    SESSION_TOTAL.labels(final_status=final_status).inc()
    SESSION_DURATION.observe(duration_seconds)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
