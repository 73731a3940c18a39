"""
Dimension Builder

Derives surrogate-keyed dimension tables from the filtered sales view.

Each dimension is described by a DimensionSpec (business key columns and
descriptive attribute columns). A build pass:

1. projects the key and attribute columns from the filtered view,
2. sets aside rows with a null business key component,
3. keeps the first-seen attribute tuple for every business key,
4. numbers the distinct keys 1..n in order of first appearance.

Business keys seen with differing attributes are reported as KeyConflict
entries. They never fail the build.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

import polars as pl
import structlog

from sales_star.monitoring.metrics import DIMENSION_KEY_CONFLICTS, STAGE_DURATION, metrics_enabled
from sales_star.schema import RAW_SALES_SCHEMA

logger = structlog.get_logger(__name__)

Frame = Union[pl.DataFrame, pl.LazyFrame]


@dataclass(frozen=True)
class DimensionSpec:
    """Static description of one dimension table"""
    name: str
    table: str
    surrogate_key: str
    business_key: Tuple[str, ...]
    attributes: Tuple[str, ...] = ()

    @property
    def columns(self) -> List[str]:
        """Source columns projected into the dimension"""
        return [*self.business_key, *self.attributes]

    @property
    def schema(self) -> Dict[str, pl.DataType]:
        schema: Dict[str, pl.DataType] = {self.surrogate_key: pl.Int64}
        schema.update({column: RAW_SALES_SCHEMA[column] for column in self.columns})
        return schema


CUSTOMER = DimensionSpec(
    name="customer",
    table="dim_customers",
    surrogate_key="customer_key",
    business_key=("customer_id",),
    attributes=("customer_name", "customer_email"),
)

PRODUCT = DimensionSpec(
    name="product",
    table="dim_products",
    surrogate_key="product_key",
    business_key=("product_id",),
    attributes=("product_name",),
)

REGION = DimensionSpec(
    name="region",
    table="dim_regions",
    surrogate_key="region_key",
    business_key=("region_id",),
    attributes=("region_name", "country"),
)

# The order date describes itself
DATE = DimensionSpec(
    name="date",
    table="dim_dates",
    surrogate_key="date_key",
    business_key=("order_date",),
)

STAR_DIMENSIONS: Tuple[DimensionSpec, ...] = (CUSTOMER, PRODUCT, REGION, DATE)


@dataclass(frozen=True)
class KeyConflict:
    """A business key observed with more than one attribute tuple"""
    dimension: str
    business_key: Tuple[Any, ...]
    variants: int
    kept: Dict[str, Any]


@dataclass
class DimensionResult:
    """Output of one dimension build pass"""
    spec: DimensionSpec
    table: pl.DataFrame
    conflicts: List[KeyConflict] = field(default_factory=list)
    null_keys: int = 0
    duration_seconds: float = 0.0

    @property
    def row_count(self) -> int:
        return self.table.height


class DimensionBuilder:
    """
    Builds one dimension table from the filtered sales view.

    Builders hold no state between calls; every build starts from scratch.

    Example:
        builder = DimensionBuilder(CUSTOMER)
        result = builder.build(filtered)
        result.table  # customer_key, customer_id, customer_name, customer_email
    """

    def __init__(self, spec: DimensionSpec):
        self.spec = spec

    def _find_conflicts(self, keyed: pl.DataFrame, table: pl.DataFrame) -> List[KeyConflict]:
        spec = self.spec
        if not spec.attributes:
            return []

        variants = (
            keyed.unique(maintain_order=True)
            .group_by(list(spec.business_key), maintain_order=True)
            .agg(pl.len().alias("_variants"))
            .filter(pl.col("_variants") > 1)
        )
        if variants.is_empty():
            return []

        kept = variants.join(table, on=list(spec.business_key), how="left")
        return [
            KeyConflict(
                dimension=spec.name,
                business_key=tuple(row[column] for column in spec.business_key),
                variants=row["_variants"],
                kept={column: row[column] for column in spec.attributes},
            )
            for row in kept.iter_rows(named=True)
        ]

    def build(self, filtered: Frame) -> DimensionResult:
        """
        Build the dimension table.

        Args:
            filtered: Filtered sales records

        Returns:
            DimensionResult with the table, conflicts and null key count
        """
        spec = self.spec
        started = time.perf_counter()

        candidates = filtered.lazy().select(spec.columns).collect()
        key_present = pl.all_horizontal([pl.col(column).is_not_null() for column in spec.business_key])
        keyed = candidates.filter(key_present)
        null_keys = candidates.height - keyed.height

        table = (
            keyed.unique(subset=list(spec.business_key), keep="first", maintain_order=True)
            .with_row_index(spec.surrogate_key, offset=1)
            .with_columns(pl.col(spec.surrogate_key).cast(pl.Int64))
            .select(list(spec.schema))
        )

        conflicts = self._find_conflicts(keyed, table)
        duration = time.perf_counter() - started

        if metrics_enabled():
            STAGE_DURATION.labels(stage=f"dimension_{spec.name}").observe(duration)
            if conflicts:
                DIMENSION_KEY_CONFLICTS.labels(dimension=spec.name).inc(len(conflicts))

        for conflict in conflicts:
            logger.warning(
                "Dimension key conflict resolved by first-seen attributes",
                dimension=spec.name,
                business_key=list(conflict.business_key),
                variants=conflict.variants,
                kept=conflict.kept,
            )

        if null_keys:
            logger.warning("Rows with null business key left out of dimension", dimension=spec.name, rows=null_keys)

        logger.info(
            "Dimension built",
            dimension=spec.name,
            table=spec.table,
            rows=table.height,
            conflicts=len(conflicts),
            duration_seconds=round(duration, 4),
        )

        return DimensionResult(
            spec=spec,
            table=table,
            conflicts=conflicts,
            null_keys=null_keys,
            duration_seconds=duration,
        )
