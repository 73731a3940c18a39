"""
Staging Loader

Copies the raw batch verbatim into the staging dataset. The staged snapshot
is replaced wholesale on every load and is the input for all later stages.
"""

from datetime import datetime
from typing import Optional

import polars as pl
import structlog
from pydantic import BaseModel

from sales_star.schema import STAGING_DATASET
from sales_star.storage.store import DatasetStore
from .sources import SalesSource

logger = structlog.get_logger(__name__)


class LoadResult(BaseModel):
    """Result of a staging load"""
    source: str
    dataset: str
    rows_loaded: int = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    load_duration_seconds: float = 0


class StagingLoader:
    """
    Full-replace loader from a sales source into the staging dataset.

    No validation or transformation happens here; data content never makes
    a load fail. Only an unreadable source does (SourceUnavailable).

    Example:
        loader = StagingLoader(store)
        staged_df = loader.load(FileSource("data/raw/sales.csv"))
    """

    def __init__(self, store: DatasetStore, dataset: str = STAGING_DATASET):
        self.store = store
        self.dataset = dataset
        self.last_result: Optional[LoadResult] = None

    def load(self, source: SalesSource) -> pl.DataFrame:
        """
        Load a source into staging.

        Args:
            source: Raw sales source

        Returns:
            The staged frame

        Raises:
            SourceUnavailable: If the source cannot be read
        """
        started_at = datetime.utcnow()
        logger.info("Starting staging load", source=source.name, dataset=self.dataset)

        df = source.read_all()
        self.store.replace(self.dataset, df)

        completed_at = datetime.utcnow()
        self.last_result = LoadResult(
            source=source.name,
            dataset=self.dataset,
            rows_loaded=len(df),
            started_at=started_at,
            completed_at=completed_at,
            load_duration_seconds=(completed_at - started_at).total_seconds(),
        )

        logger.info(
            "Staging load completed",
            rows_loaded=len(df),
            duration_seconds=self.last_result.load_duration_seconds,
        )
        return df
