"""
Fact Resolver

Turns filtered sales records into fact rows by swapping business keys for
surrogate keys.

One DimensionIndex (business key -> surrogate key mapping) is built per
dimension before any record is resolved, so each lookup is a single dict
access. Resolution is left-outer: a key with no matching dimension row
becomes a null foreign key and the fact row is still emitted.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import polars as pl
import structlog

from sales_star.config import get_settings
from sales_star.monitoring.metrics import STAGE_DURATION, UNRESOLVED_REFERENCES, metrics_enabled
from sales_star.schema import FACT_SCHEMA
from .dimensions import STAR_DIMENSIONS, DimensionSpec

logger = structlog.get_logger(__name__)
settings = get_settings()

Frame = Union[pl.DataFrame, pl.LazyFrame]
BusinessKey = Tuple[Any, ...]


class DimensionIndex:
    """
    Exact-match lookup from business key tuple to surrogate key.

    Example:
        index = DimensionIndex.from_table(CUSTOMER, dim_customers)
        index.lookup((5,))  # -> 1
    """

    def __init__(self, spec: DimensionSpec, mapping: Dict[BusinessKey, int]):
        self.spec = spec
        self._mapping = mapping

    @classmethod
    def from_table(cls, spec: DimensionSpec, table: pl.DataFrame) -> "DimensionIndex":
        """
        Index a dimension table.

        Raises:
            ValueError: If a business key appears on more than one row
        """
        keys = table.select(list(spec.business_key)).iter_rows()
        surrogates = table[spec.surrogate_key].to_list()
        mapping = dict(zip(keys, surrogates))

        if len(mapping) != table.height:
            raise ValueError(
                f"Dimension '{spec.name}' has {table.height - len(mapping)} duplicate business keys"
            )
        return cls(spec, mapping)

    def lookup(self, key: BusinessKey) -> Optional[int]:
        """Surrogate key for ``key``, or None when unmatched"""
        if any(part is None for part in key):
            return None
        return self._mapping.get(key)

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, key: BusinessKey) -> bool:
        return self.lookup(key) is not None


@dataclass(frozen=True)
class UnresolvedReference:
    """A fact whose business key found no dimension row"""
    dimension: str
    order_id: Optional[int]
    business_key: BusinessKey


@dataclass
class ResolutionReport:
    """Counts gathered while resolving facts"""
    fact_count: int = 0
    unresolved_counts: Dict[str, int] = field(default_factory=dict)
    samples: List[UnresolvedReference] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total_unresolved(self) -> int:
        return sum(self.unresolved_counts.values())

    def merge(self, other: "ResolutionReport", sample_limit: int) -> None:
        self.fact_count += other.fact_count
        for dimension, count in other.unresolved_counts.items():
            self.unresolved_counts[dimension] = self.unresolved_counts.get(dimension, 0) + count
        room = max(sample_limit - len(self.samples), 0)
        self.samples.extend(other.samples[:room])


class FactResolver:
    """
    Resolves filtered sales records into the fact dataset.

    Records are split into chunks resolved concurrently in worker threads,
    at most ``max_workers`` at a time. Chunk results are concatenated in
    chunk order.

    Example:
        resolver = FactResolver()
        facts, report = await resolver.resolve(filtered, {"customer": dim_customers, ...})
    """

    def __init__(
        self,
        dimensions: Sequence[DimensionSpec] = STAR_DIMENSIONS,
        max_workers: Optional[int] = None,
        chunk_size: Optional[int] = None,
        sample_limit: Optional[int] = None,
    ):
        self.dimensions = tuple(dimensions)
        self.max_workers = max_workers or settings.pipeline.max_workers
        self.chunk_size = chunk_size or settings.pipeline.chunk_size
        self.sample_limit = settings.pipeline.unresolved_sample_size if sample_limit is None else sample_limit

    def build_indexes(self, tables: Mapping[str, pl.DataFrame]) -> Dict[str, DimensionIndex]:
        """Build one lookup index per dimension, keyed by dimension name"""
        missing = [spec.name for spec in self.dimensions if spec.name not in tables]
        if missing:
            raise ValueError(f"Missing dimension tables: {missing}")

        return {
            spec.name: DimensionIndex.from_table(spec, tables[spec.name])
            for spec in self.dimensions
        }

    def resolve_chunk(
        self,
        chunk: pl.DataFrame,
        indexes: Mapping[str, DimensionIndex],
    ) -> Tuple[List[Dict[str, Any]], ResolutionReport]:
        """Resolve a slice of filtered records; independent of other chunks"""
        report = ResolutionReport(unresolved_counts={spec.name: 0 for spec in self.dimensions})
        rows: List[Dict[str, Any]] = []

        for record in chunk.iter_rows(named=True):
            fact = {
                "order_id": record["order_id"],
                "quantity": record["quantity"],
                "unit_price": record["unit_price"],
                "total": record["total_amount"],
            }
            for spec in self.dimensions:
                key = tuple(record[column] for column in spec.business_key)
                surrogate = indexes[spec.name].lookup(key)
                if surrogate is None:
                    report.unresolved_counts[spec.name] += 1
                    if len(report.samples) < self.sample_limit:
                        report.samples.append(
                            UnresolvedReference(spec.name, record["order_id"], key)
                        )
                fact[spec.surrogate_key] = surrogate
            rows.append(fact)

        report.fact_count = len(rows)
        return rows, report

    def _chunks(self, frame: pl.DataFrame) -> Iterator[pl.DataFrame]:
        return frame.iter_slices(n_rows=self.chunk_size)

    def _fact_schema(self) -> Dict[str, pl.DataType]:
        schema = {name: dtype for name, dtype in FACT_SCHEMA.items() if not name.endswith("_key")}
        schema.update({spec.surrogate_key: pl.Int64 for spec in self.dimensions})
        return schema

    async def resolve(
        self,
        filtered: Frame,
        dims: Mapping[str, pl.DataFrame],
    ) -> Tuple[pl.DataFrame, ResolutionReport]:
        """
        Resolve every filtered record into exactly one fact row.

        Args:
            filtered: Filtered sales records
            dims: Dimension tables keyed by dimension name

        Returns:
            Tuple of (fact frame, resolution report)
        """
        started = time.perf_counter()
        indexes = self.build_indexes(dims)
        frame = filtered.lazy().collect()

        semaphore = asyncio.Semaphore(self.max_workers)

        async def run_chunk(chunk: pl.DataFrame):
            async with semaphore:
                return await asyncio.to_thread(self.resolve_chunk, chunk, indexes)

        results = await asyncio.gather(*(run_chunk(chunk) for chunk in self._chunks(frame)))

        report = ResolutionReport(unresolved_counts={spec.name: 0 for spec in self.dimensions})
        rows: List[Dict[str, Any]] = []
        for chunk_rows, chunk_report in results:
            rows.extend(chunk_rows)
            report.merge(chunk_report, self.sample_limit)

        schema = self._fact_schema()
        facts = pl.from_dicts(rows, schema=schema) if rows else pl.DataFrame(schema=schema)

        report.duration_seconds = time.perf_counter() - started
        if metrics_enabled():
            STAGE_DURATION.labels(stage="fact_resolution").observe(report.duration_seconds)
            for dimension, count in report.unresolved_counts.items():
                if count:
                    UNRESOLVED_REFERENCES.labels(dimension=dimension).inc(count)

        if report.total_unresolved:
            logger.warning(
                "Unresolved dimension references",
                **{f"unresolved_{name}": count for name, count in report.unresolved_counts.items() if count},
            )

        logger.info(
            "Facts resolved",
            facts=report.fact_count,
            chunks=len(results),
            unresolved=report.total_unresolved,
            duration_seconds=round(report.duration_seconds, 4),
        )

        return facts, report
