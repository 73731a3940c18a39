"""
Data Validation Module

Rule-based profiling of the staged snapshot. Checks never stop a pipeline
run; their outcome is attached to the run result so data-quality issues are
visible to whoever investigates the batch.

Features:
- Null checks
- Uniqueness checks
- Range checks
- Custom business rules
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def summary(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "warning_count": self.warning_count,
            "failures": {c.name: c.failed_rows for c in self.checks if not c.passed},
        }


CheckFunc = Callable[[pl.DataFrame], ValidationCheck]


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("customer_id")
        validator.add_range_check("quantity", min_value=0)
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[tuple] = []

    def _missing_column(self, name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        name = f"not_null_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append((name, severity, check))
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of column values"""
        name = f"unique_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            total = len(df)
            duplicate_count = total - df[column].n_unique()
            passed = duplicate_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {duplicate_count} duplicate values" if not passed else f"Column '{column}' values are unique",
                details={"duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append((name, severity, check))
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        name = f"range_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(name=name, passed=True, severity=severity, message="No range specified")

            out_of_range = df.filter(pl.any_horizontal(conditions)).height
            passed = out_of_range == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=len(df),
            )

        self._checks.append((name, severity, check))
        return self

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], int],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """
        Add custom validation check.

        ``check_func`` returns the number of offending rows; zero passes.
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            failed_rows = int(check_func(df))
            return ValidationCheck(
                name=name,
                passed=failed_rows == 0,
                severity=severity,
                message="Check passed" if failed_rows == 0 else message_on_fail.format(count=failed_rows),
                failed_rows=failed_rows,
                total_rows=len(df),
            )

        self._checks.append((name, severity, check))
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        A check that cannot be evaluated (e.g. a column with an unexpected
        type) is recorded as failed with the polars error as its message.
        """
        started_at = datetime.utcnow()
        results = []

        logger.info(f"Running {len(self._checks)} validation checks on {len(df)} rows")

        for name, severity, check_func in self._checks:
            try:
                result = check_func(df)
            except pl.exceptions.PolarsError as e:
                result = ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )

        logger.info(
            f"Validation complete: {status.value}",
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result


def _inconsistent_totals(df: pl.DataFrame) -> int:
    """Rows whose total_amount differs from quantity * unit_price"""
    return df.filter(
        pl.col("quantity").is_not_null()
        & (pl.col("unit_price").cast(pl.Float64) * pl.col("quantity") - pl.col("total_amount").cast(pl.Float64)).abs().gt(0.005)
    ).height


def create_staging_validator() -> DataValidator:
    """
    Create the validator profiling the staged sales snapshot.

    Business keys and measures are checked at WARNING level since the
    pipeline absorbs these problems; the totals check is informational only
    because totals are carried through unchanged.
    """
    return (
        DataValidator()
        .add_not_null_check("order_id")
        .add_unique_check("order_id", severity=ValidationSeverity.WARNING)
        .add_not_null_check("order_date", severity=ValidationSeverity.WARNING)
        .add_not_null_check("customer_id", severity=ValidationSeverity.WARNING)
        .add_not_null_check("product_id", severity=ValidationSeverity.WARNING)
        .add_not_null_check("region_id", severity=ValidationSeverity.WARNING)
        .add_not_null_check("quantity", severity=ValidationSeverity.INFO)
        .add_range_check("quantity", min_value=0, severity=ValidationSeverity.WARNING)
        .add_custom_check(
            name="total_matches_quantity_times_price",
            check_func=_inconsistent_totals,
            message_on_fail="{count} rows have total_amount != quantity * unit_price",
            severity=ValidationSeverity.INFO,
        )
    )
