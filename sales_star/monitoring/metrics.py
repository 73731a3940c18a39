"""
Pipeline Metrics

Prometheus collectors for run outcomes and data-quality counts. Updates are
skipped when ``monitoring.enable_metrics`` is off.
"""

from prometheus_client import Counter, Histogram

from sales_star.config import get_settings

PIPELINE_RUNS = Counter(
    "sales_star_pipeline_runs_total",
    "Total number of pipeline runs",
    ["status"],
)

ROWS_PROCESSED = Counter(
    "sales_star_rows_processed_total",
    "Rows emitted by each pipeline stage",
    ["stage"],
)

UNRESOLVED_REFERENCES = Counter(
    "sales_star_unresolved_references_total",
    "Fact foreign keys left null because no dimension row matched",
    ["dimension"],
)

DIMENSION_KEY_CONFLICTS = Counter(
    "sales_star_dimension_key_conflicts_total",
    "Business keys observed with differing attributes",
    ["dimension"],
)

STAGE_DURATION = Histogram(
    "sales_star_stage_duration_seconds",
    "Time spent in each pipeline stage",
    ["stage"],
)


def metrics_enabled() -> bool:
    """Whether collectors should be updated"""
    return get_settings().monitoring.enable_metrics
