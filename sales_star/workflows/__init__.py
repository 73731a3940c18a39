"""
Workflow Orchestration Module
"""
from .batch_etl import star_schema_etl

__all__ = ["star_schema_etl"]
