"""
Dataset Storage Module
"""
from .store import DatasetStore, InMemoryStore, ParquetStore, create_store

__all__ = [
    "DatasetStore",
    "InMemoryStore",
    "ParquetStore",
    "create_store",
]
