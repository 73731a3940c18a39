"""
Raw Sales Sources

Source collaborators that deliver the full batch of raw sales records as a
frame conforming to RAW_SALES_SCHEMA. Any failure to obtain or decode the
records is reported as SourceUnavailable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Union

import polars as pl
import structlog
from pydantic import ValidationError

from sales_star.exceptions import DatasetNotFoundError, SourceUnavailable
from sales_star.schema import RAW_SALES_SCHEMA, SalesRecord, conform_to_schema, records_to_frame
from sales_star.storage.store import DatasetStore

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"
    PARQUET = "parquet"


class SalesSource(ABC):
    """Abstract base class for raw sales sources"""

    name: str = "source"

    @abstractmethod
    def read_all(self) -> pl.DataFrame:
        """
        Read every raw sales record.

        Raises:
            SourceUnavailable: If the records cannot be read
        """
        pass


class InMemorySource(SalesSource):
    """Source backed by Python records (SalesRecord models or mappings)"""

    name = "memory"

    def __init__(self, records: Iterable[Union[SalesRecord, Mapping[str, Any]]]):
        self._records = list(records)

    def read_all(self) -> pl.DataFrame:
        try:
            return records_to_frame(self._records)
        except ValidationError as e:
            raise SourceUnavailable(self.name, f"invalid record: {e}") from e


@dataclass
class FileSource(SalesSource):
    """
    Source backed by a single CSV, JSON, JSONL or Parquet file.

    Example:
        source = FileSource("data/raw/sales.csv", FileFormat.CSV)
        df = source.read_all()
    """
    file_path: Union[str, Path]
    file_format: FileFormat = FileFormat.CSV
    delimiter: str = ","
    encoding: str = "utf8"
    null_values: List[str] = field(default_factory=lambda: ["", "NULL", "null", "None", "NA", "N/A"])

    def __post_init__(self):
        self.file_path = Path(self.file_path)
        self.file_format = FileFormat(self.file_format)

    @property
    def name(self) -> str:
        return str(self.file_path)

    def _read_csv(self) -> pl.DataFrame:
        """Read CSV file with typed raw columns"""
        return pl.read_csv(
            self.file_path,
            separator=self.delimiter,
            encoding=self.encoding,
            null_values=self.null_values,
            schema_overrides=RAW_SALES_SCHEMA,
        )

    def _read_json(self) -> pl.DataFrame:
        """Read JSON array file"""
        return pl.read_json(self.file_path)

    def _read_jsonl(self) -> pl.DataFrame:
        """Read JSON Lines (NDJSON) file"""
        return pl.read_ndjson(self.file_path)

    def _read_parquet(self) -> pl.DataFrame:
        """Read Parquet file"""
        return pl.read_parquet(self.file_path)

    def read_all(self) -> pl.DataFrame:
        readers = {
            FileFormat.CSV: self._read_csv,
            FileFormat.JSON: self._read_json,
            FileFormat.JSONL: self._read_jsonl,
            FileFormat.PARQUET: self._read_parquet,
        }
        reader = readers[self.file_format]

        if not self.file_path.exists():
            raise SourceUnavailable(self.name, "file not found")

        try:
            df = reader()
            df = conform_to_schema(df, RAW_SALES_SCHEMA)
        except (OSError, ValueError, pl.exceptions.PolarsError) as e:
            logger.error("Source read failed", source=self.name, error=str(e))
            raise SourceUnavailable(self.name, str(e)) from e

        logger.info("Source read", source=self.name, format=self.file_format.value, rows=len(df))
        return df


class DatasetSource(SalesSource):
    """
    Source backed by a dataset in a store.

    Used to reprocess the staging snapshot without touching the upstream
    system.
    """

    def __init__(self, store: DatasetStore, dataset: str):
        self.store = store
        self.dataset = dataset
        self.name = f"dataset:{dataset}"

    def read_all(self) -> pl.DataFrame:
        try:
            df = self.store.read_all(self.dataset)
            return conform_to_schema(df, RAW_SALES_SCHEMA)
        except (DatasetNotFoundError, OSError, ValueError, pl.exceptions.PolarsError) as e:
            raise SourceUnavailable(self.name, str(e)) from e
