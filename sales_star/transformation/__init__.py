"""
Dimensional Modeling Module
"""
from .dimensions import (
    CUSTOMER,
    DATE,
    PRODUCT,
    REGION,
    STAR_DIMENSIONS,
    DimensionBuilder,
    DimensionResult,
    DimensionSpec,
    KeyConflict,
)
from .facts import DimensionIndex, FactResolver, ResolutionReport, UnresolvedReference

__all__ = [
    "CUSTOMER",
    "DATE",
    "PRODUCT",
    "REGION",
    "STAR_DIMENSIONS",
    "DimensionBuilder",
    "DimensionResult",
    "DimensionSpec",
    "KeyConflict",
    "DimensionIndex",
    "FactResolver",
    "ResolutionReport",
    "UnresolvedReference",
]
