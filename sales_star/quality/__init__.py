"""
Data Quality Module
"""
from .filters import DEFAULT_RULES, FilterRule, QualityFilter, not_null_rule
from .validators import DataValidator, ValidationResult, create_staging_validator

__all__ = [
    "DEFAULT_RULES",
    "FilterRule",
    "QualityFilter",
    "not_null_rule",
    "DataValidator",
    "ValidationResult",
    "create_staging_validator",
]
