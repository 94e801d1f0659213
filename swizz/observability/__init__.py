"""Observability module for metrics."""

from swizz.observability.metrics import (
    ACTIVE_SESSIONS,
    CHUNKS_DROPPED,
    CHUNKS_PROCESSED,
    HUMAN_DETECTED,
    SESSION_TOTAL,
    STAGE_FAILURES,
    STAGE_LATENCY,
    record_chunk_result,
    record_session_closed,
    record_stage_failure,
    record_stage_latency,
)

__all__ = [
    "ACTIVE_SESSIONS",
    "CHUNKS_DROPPED",
    "CHUNKS_PROCESSED",
    "HUMAN_DETECTED",
    "SESSION_TOTAL",
    "STAGE_FAILURES",
    "STAGE_LATENCY",
    "record_chunk_result",
    "record_session_closed",
    "record_stage_failure",
    "record_stage_latency",
]
