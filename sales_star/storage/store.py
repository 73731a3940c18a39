"""
Dataset Stores

Storage collaborators for the staging snapshot and the published star schema.
Every store offers an atomic full-overwrite ``replace`` per dataset and a
``publish`` that swaps several datasets in together, so readers see either
the previous run's outputs or the new ones.
"""

import os
import shutil
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set, Union

import polars as pl
import structlog
from pydantic import BaseModel, Field, ValidationError

from sales_star.config import get_settings
from sales_star.config.settings import Settings
from sales_star.exceptions import DatasetNotFoundError, StorageError

logger = structlog.get_logger(__name__)


class DatasetStore(ABC):
    """Abstract base class for dataset stores"""

    @abstractmethod
    def replace(self, name: str, df: pl.DataFrame) -> None:
        """Atomically overwrite a single dataset"""
        pass

    @abstractmethod
    def publish(self, datasets: Mapping[str, pl.DataFrame]) -> None:
        """Atomically overwrite several datasets at once"""
        pass

    @abstractmethod
    def read_all(self, name: str) -> pl.DataFrame:
        """
        Read a whole dataset.

        Raises:
            DatasetNotFoundError: If the dataset was never written
        """
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def datasets(self) -> List[str]:
        """Names of all stored datasets"""
        pass


class InMemoryStore(DatasetStore):
    """
    Process-local store.

    The dataset mapping is never mutated in place; each write builds a new
    mapping and swaps the reference under a lock.
    """

    def __init__(self):
        self._datasets: Dict[str, pl.DataFrame] = {}
        self._lock = threading.Lock()

    def replace(self, name: str, df: pl.DataFrame) -> None:
        self.publish({name: df})

    def publish(self, datasets: Mapping[str, pl.DataFrame]) -> None:
        with self._lock:
            updated = dict(self._datasets)
            updated.update({name: df.clone() for name, df in datasets.items()})
            self._datasets = updated

        logger.debug("Datasets published", store="memory", datasets=sorted(datasets))

    def read_all(self, name: str) -> pl.DataFrame:
        current = self._datasets
        if name not in current:
            raise DatasetNotFoundError(name)
        return current[name].clone()

    def exists(self, name: str) -> bool:
        return name in self._datasets

    def datasets(self) -> List[str]:
        return sorted(self._datasets)


class StoreManifest(BaseModel):
    """Dataset name -> version directory holding its current Parquet file"""
    datasets: Dict[str, str] = Field(default_factory=dict)


class ParquetStore(DatasetStore):
    """
    Versioned Parquet datasets under a root directory.

    Layout::

        <root>/manifest.json                 dataset -> version
        <root>/versions/<version>/<name>.parquet

    A publish writes every dataset into a fresh version directory, then makes
    the whole set current with one ``os.replace`` of the manifest. Readers
    resolve names through the manifest, so they see all of a publish or none
    of it. Version directories no longer referenced by the current or the
    previous manifest are pruned after each publish.

    Example:
        store = ParquetStore("data/warehouse")
        store.publish({"dim_customers": dim_df, "fact_sales": fact_df})
    """

    SUFFIX = ".parquet"
    MANIFEST = "manifest.json"
    VERSIONS = "versions"

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.versions_root = self.root / self.VERSIONS
        self.versions_root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def manifest_path(self) -> Path:
        return self.root / self.MANIFEST

    def _manifest(self) -> StoreManifest:
        if not self.manifest_path.exists():
            return StoreManifest()
        try:
            return StoreManifest.model_validate_json(self.manifest_path.read_text())
        except (OSError, ValidationError) as e:
            raise StorageError(f"Unreadable manifest at {self.manifest_path}: {e}") from e

    def _path(self, name: str) -> Optional[Path]:
        version = self._manifest().datasets.get(name)
        if version is None:
            return None
        return self.versions_root / version / f"{name}{self.SUFFIX}"

    def _swap_manifest(self, manifest: StoreManifest, version: str) -> None:
        temp_path = self.root / f".{self.MANIFEST}.{version}.tmp"
        try:
            temp_path.write_text(manifest.model_dump_json())
            os.replace(temp_path, self.manifest_path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def _prune(self, keep: Set[str]) -> None:
        for version_dir in self.versions_root.iterdir():
            if version_dir.name not in keep:
                shutil.rmtree(version_dir, ignore_errors=True)

    def replace(self, name: str, df: pl.DataFrame) -> None:
        self.publish({name: df})

    def publish(self, datasets: Mapping[str, pl.DataFrame]) -> None:
        version = f"{datetime.utcnow():%Y%m%dT%H%M%S}-{uuid.uuid4().hex[:8]}"
        version_dir = self.versions_root / version

        with self._lock:
            previous = self._manifest()
            try:
                version_dir.mkdir()
                for name, df in datasets.items():
                    df.write_parquet(version_dir / f"{name}{self.SUFFIX}")

                current = StoreManifest(datasets={**previous.datasets, **{name: version for name in datasets}})
                self._swap_manifest(current, version)
            except (OSError, pl.exceptions.PolarsError) as e:
                shutil.rmtree(version_dir, ignore_errors=True)
                logger.error("Dataset publish failed", root=str(self.root), version=version, error=str(e))
                raise StorageError(f"Failed to publish datasets to {self.root}: {e}") from e

            self._prune(set(current.datasets.values()) | set(previous.datasets.values()))

        logger.info(
            "Datasets published",
            store="parquet",
            root=str(self.root),
            version=version,
            datasets=sorted(datasets),
        )

    def read_all(self, name: str) -> pl.DataFrame:
        path = self._path(name)
        if path is None:
            raise DatasetNotFoundError(name)
        return pl.read_parquet(path)

    def exists(self, name: str) -> bool:
        return name in self._manifest().datasets

    def datasets(self) -> List[str]:
        return sorted(self._manifest().datasets)


def create_store(
    backend: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> DatasetStore:
    """Create the configured dataset store"""
    settings = settings or get_settings()
    backend = backend or settings.pipeline.store_backend

    if backend == "memory":
        return InMemoryStore()
    if backend == "parquet":
        return ParquetStore(settings.data_lake.warehouse_path)
    raise ValueError(f"Unknown store backend: {backend}")
