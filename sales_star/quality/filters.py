"""
Quality Filter

Builds the cleaned view of staged records. Rows failing a rule are dropped
silently; a drop is a business rule, not a fault.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

Frame = Union[pl.DataFrame, pl.LazyFrame]


@dataclass(frozen=True)
class FilterRule:
    """A row-level rule; rows are kept where ``predicate`` is true"""
    name: str
    predicate: pl.Expr
    description: str = ""


def not_null_rule(column: str) -> FilterRule:
    """Keep rows where ``column`` is not null"""
    return FilterRule(
        name=f"not_null_{column}",
        predicate=pl.col(column).is_not_null(),
        description=f"Drop rows with null {column}",
    )


DEFAULT_RULES = (not_null_rule("quantity"),)


class QualityFilter:
    """
    Lazy filter over the staging snapshot.

    The returned view is recomputed every time it is collected, so nothing
    is cached between runs.

    Example:
        quality_filter = QualityFilter()
        filtered = quality_filter.filter(staged_df)
        filtered.collect()
    """

    def __init__(self, rules: Optional[Sequence[FilterRule]] = None):
        self.rules = tuple(DEFAULT_RULES if rules is None else rules)

    def _combined_predicate(self) -> pl.Expr:
        return pl.all_horizontal([rule.predicate for rule in self.rules])

    def filter(self, staged: Frame) -> pl.LazyFrame:
        """Return the rows of ``staged`` passing every rule"""
        lazy = staged.lazy()
        if not self.rules:
            return lazy
        return lazy.filter(self._combined_predicate())

    def drop_counts(self, staged: Frame) -> Dict[str, int]:
        """Number of staged rows rejected by each rule"""
        if not self.rules:
            return {}

        counts = (
            staged.lazy()
            .select([
                (~rule.predicate).fill_null(True).sum().alias(rule.name)
                for rule in self.rules
            ])
            .collect()
        )
        drops = {name: int(counts[name][0] or 0) for name in counts.columns}

        dropped = {name: count for name, count in drops.items() if count}
        if dropped:
            logger.info("Quality filter dropped rows", **dropped)
        return drops
