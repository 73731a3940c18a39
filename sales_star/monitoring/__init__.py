"""
Monitoring Module
"""
from .metrics import (
    DIMENSION_KEY_CONFLICTS,
    PIPELINE_RUNS,
    ROWS_PROCESSED,
    STAGE_DURATION,
    UNRESOLVED_REFERENCES,
    metrics_enabled,
)

__all__ = [
    "DIMENSION_KEY_CONFLICTS",
    "PIPELINE_RUNS",
    "ROWS_PROCESSED",
    "STAGE_DURATION",
    "UNRESOLVED_REFERENCES",
    "metrics_enabled",
]
