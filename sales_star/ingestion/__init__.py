"""
Data Ingestion Module
"""
from .sources import DatasetSource, FileFormat, FileSource, InMemorySource, SalesSource
from .staging import LoadResult, StagingLoader

__all__ = [
    "DatasetSource",
    "FileFormat",
    "FileSource",
    "InMemorySource",
    "SalesSource",
    "LoadResult",
    "StagingLoader",
]
