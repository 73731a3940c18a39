"""
Pipeline Coordinator

Runs one batch through the star-schema build:

1. Load the source into staging (full replace)
2. Profile the staged snapshot (optional, never blocking)
3. Filter staged rows lazily
4. Build all dimensions concurrently
5. Resolve facts once every dimension is complete
6. Publish dimensions and facts together

Only an unreadable source or a failing store stops a run. Data-quality
conditions end up as counts in the RunResult.
"""

import asyncio
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import polars as pl
import structlog

from sales_star.config import get_settings
from sales_star.exceptions import SourceUnavailable, StorageError
from sales_star.ingestion.sources import SalesSource
from sales_star.ingestion.staging import StagingLoader
from sales_star.monitoring.metrics import PIPELINE_RUNS, ROWS_PROCESSED, STAGE_DURATION, metrics_enabled
from sales_star.quality.filters import QualityFilter
from sales_star.quality.validators import DataValidator, create_staging_validator
from sales_star.schema import FACT_DATASET, STAGING_DATASET
from sales_star.storage.store import DatasetStore
from sales_star.transformation.dimensions import STAR_DIMENSIONS, DimensionBuilder, DimensionResult, DimensionSpec
from sales_star.transformation.facts import FactResolver, UnresolvedReference

logger = structlog.get_logger(__name__)
settings = get_settings()


class RunStatus(str, Enum):
    """Pipeline run status"""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RunResult:
    """Outcome summary of one pipeline run"""
    run_id: str
    status: RunStatus
    staged_count: int = 0
    filtered_count: int = 0
    dropped_counts: Dict[str, int] = field(default_factory=dict)
    dimension_counts: Dict[str, int] = field(default_factory=dict)
    conflict_counts: Dict[str, int] = field(default_factory=dict)
    null_key_counts: Dict[str, int] = field(default_factory=dict)
    fact_count: int = 0
    unresolved_counts: Dict[str, int] = field(default_factory=dict)
    unresolved_samples: List[UnresolvedReference] = field(default_factory=list)
    validation: Optional[Dict[str, Any]] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    @property
    def has_data_quality_issues(self) -> bool:
        return any(self.conflict_counts.values()) or any(self.unresolved_counts.values())

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["status"] = self.status.value
        result["started_at"] = self.started_at.isoformat()
        result["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        result["unresolved_samples"] = [
            {"dimension": s.dimension, "order_id": s.order_id, "business_key": [str(v) for v in s.business_key]}
            for s in self.unresolved_samples
        ]
        return result


class PipelineCoordinator:
    """
    Sequences staging, filtering, dimension builds and fact resolution.

    Example:
        coordinator = PipelineCoordinator(ParquetStore("data/warehouse"))
        result = await coordinator.run(FileSource("data/raw/sales.csv"))
    """

    def __init__(
        self,
        store: DatasetStore,
        dimensions: Sequence[DimensionSpec] = STAR_DIMENSIONS,
        quality_filter: Optional[QualityFilter] = None,
        validator: Optional[DataValidator] = None,
        max_workers: Optional[int] = None,
        chunk_size: Optional[int] = None,
        parallel_dimensions: Optional[bool] = None,
        enable_validation: Optional[bool] = None,
    ):
        self.store = store
        self.dimensions = tuple(dimensions)
        self.loader = StagingLoader(store, STAGING_DATASET)
        self.quality_filter = quality_filter or QualityFilter()
        self.builders = [DimensionBuilder(spec) for spec in self.dimensions]
        self.resolver = FactResolver(self.dimensions, max_workers=max_workers, chunk_size=chunk_size)
        self.parallel_dimensions = (
            settings.pipeline.parallel_dimension_builds if parallel_dimensions is None else parallel_dimensions
        )
        if enable_validation is None:
            enable_validation = settings.data_quality.enable_data_quality_checks
        self.validator = validator or (create_staging_validator() if enable_validation else None)

    async def _build_dimensions(self, filtered: pl.LazyFrame) -> List[DimensionResult]:
        if self.parallel_dimensions:
            # gather is the barrier: facts need every index
            return list(await asyncio.gather(
                *(asyncio.to_thread(builder.build, filtered) for builder in self.builders)
            ))
        return [builder.build(filtered) for builder in self.builders]

    def _record_metrics(self, result: RunResult) -> None:
        if not metrics_enabled():
            return
        PIPELINE_RUNS.labels(status=result.status.value).inc()
        if result.status == RunStatus.SUCCEEDED:
            ROWS_PROCESSED.labels(stage="staged").inc(result.staged_count)
            ROWS_PROCESSED.labels(stage="filtered").inc(result.filtered_count)
            ROWS_PROCESSED.labels(stage="facts").inc(result.fact_count)

    async def run(self, source: SalesSource) -> RunResult:
        """
        Execute one pipeline run.

        Args:
            source: Raw sales source

        Returns:
            RunResult with stage counts and data-quality counters

        Raises:
            SourceUnavailable: If the source cannot be read; nothing is published
            StorageError: If the store rejects the staging write or the publish;
                prior outputs remain
        """
        result = RunResult(run_id=uuid.uuid4().hex[:12], status=RunStatus.FAILED)
        started = time.perf_counter()
        log = logger.bind(run_id=result.run_id)
        log.info("Starting pipeline run", source=source.name)

        try:
            staged = self.loader.load(source)
        except SourceUnavailable as e:
            self._record_metrics(result)
            log.error("Pipeline aborted: source unavailable", source=e.source, reason=e.reason)
            raise
        except StorageError as e:
            self._record_metrics(result)
            log.error("Pipeline aborted: staging write failed", error=str(e))
            raise

        if metrics_enabled():
            STAGE_DURATION.labels(stage="staging").observe(time.perf_counter() - started)

        result.staged_count = staged.height

        if self.validator is not None:
            result.validation = self.validator.validate(staged).summary()

        filtered = self.quality_filter.filter(staged)
        result.dropped_counts = self.quality_filter.drop_counts(staged)
        result.filtered_count = filtered.select(pl.len()).collect().item()

        dimension_results = await self._build_dimensions(filtered)
        tables = {r.spec.name: r.table for r in dimension_results}
        for r in dimension_results:
            result.dimension_counts[r.spec.name] = r.row_count
            result.conflict_counts[r.spec.name] = len(r.conflicts)
            result.null_key_counts[r.spec.name] = r.null_keys

        facts, report = await self.resolver.resolve(filtered, tables)
        result.fact_count = facts.height
        result.unresolved_counts = dict(report.unresolved_counts)
        result.unresolved_samples = list(report.samples)

        outputs = {r.spec.table: r.table for r in dimension_results}
        outputs[FACT_DATASET] = facts
        try:
            self.store.publish(outputs)
        except StorageError as e:
            self._record_metrics(result)
            log.error("Pipeline aborted: publish failed", error=str(e))
            raise

        result.status = RunStatus.SUCCEEDED
        result.completed_at = datetime.utcnow()
        result.duration_seconds = time.perf_counter() - started

        self._record_metrics(result)

        log.info(
            "Pipeline run complete",
            staged=result.staged_count,
            filtered=result.filtered_count,
            dimensions=result.dimension_counts,
            facts=result.fact_count,
            unresolved=result.unresolved_counts,
            conflicts=result.conflict_counts,
            duration_seconds=round(result.duration_seconds, 4),
        )
        return result

    def run_sync(self, source: SalesSource) -> RunResult:
        """Run the pipeline from synchronous code"""
        return asyncio.run(self.run(source))
