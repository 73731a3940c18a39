"""
Prefect Workflow Orchestration - Star Schema ETL

Scheduled wrapper around one PipelineCoordinator run:
- Retries on source unavailability
- Data quality alerting from the run summary
"""

from pathlib import Path
from typing import Optional

import structlog
from prefect import flow, task

from sales_star.config import get_settings
from sales_star.ingestion.sources import FileFormat, FileSource
from sales_star.pipeline import PipelineCoordinator
from sales_star.storage.store import ParquetStore

logger = structlog.get_logger(__name__)
settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="run_star_schema_pipeline",
    description="Stage raw sales and publish the star schema",
    retries=3,
    retry_delay_seconds=60,
)
async def run_star_schema_pipeline(
    source_path: str,
    file_format: str = "csv",
    warehouse_path: Optional[str] = None,
) -> dict:
    """Run the coordinator over one raw file"""
    store = ParquetStore(warehouse_path or settings.data_lake.warehouse_path)
    coordinator = PipelineCoordinator(store)

    result = await coordinator.run(FileSource(source_path, FileFormat(file_format)))
    return result.to_dict()


@task(
    name="report_data_quality",
    description="Alert on conflicts and unresolved references",
)
async def report_data_quality(summary: dict) -> dict:
    """Raise alerts for non-zero data-quality counters"""
    conflicts = {k: v for k, v in summary["conflict_counts"].items() if v}
    unresolved = {k: v for k, v in summary["unresolved_counts"].items() if v}
    dropped = sum(summary["dropped_counts"].values())

    if conflicts:
        logger.warning("[WARNING] Dimension key conflicts", run_id=summary["run_id"], **conflicts)
    if unresolved:
        logger.warning("[WARNING] Unresolved fact references", run_id=summary["run_id"], **unresolved)

    return {
        "run_id": summary["run_id"],
        "conflicts": conflicts,
        "unresolved": unresolved,
        "dropped_rows": dropped,
        "healthy": not conflicts and not unresolved,
    }


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="star_schema_etl",
    description="Daily star-schema build from raw sales files",
)
async def star_schema_etl(
    source_path: Optional[str] = None,
    file_format: Optional[str] = None,
    warehouse_path: Optional[str] = None,
) -> dict:
    """
    Star-schema ETL flow.

    Steps:
    1. Run the pipeline (staging, dimensions, facts, publish)
    2. Report data-quality counters
    """
    file_format = file_format or settings.data_lake.default_format
    source_path = source_path or str(Path(settings.data_lake.raw_path) / f"sales.{file_format}")

    logger.info("Starting star schema ETL", source=source_path)

    summary = await run_star_schema_pipeline(source_path, file_format, warehouse_path)
    quality = await report_data_quality(summary)

    return {
        "status": summary["status"],
        "summary": summary,
        "quality": quality,
    }


if __name__ == "__main__":
    import asyncio

    asyncio.run(star_schema_etl())
