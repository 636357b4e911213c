"""
Data Validation Module

Rule-based data quality checks for the star schema tables.

Features:
- Null checks
- Uniqueness checks
- Range and allowed-value checks
- Referential integrity checks
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

from retail_dw.exceptions import ValidationError
from retail_dw.warehouse.schema import SEGMENTS, StarSchema

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Critical - blocks pipeline
    WARNING = "warning"  # Non-critical - logged but continues


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
    table: str
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

    def raise_for_status(self) -> None:
        """
        Raise when an error-severity check failed.

        Raises:
            ValidationError: listing every failed error check
        """
        if self.status != ValidationStatus.FAILED:
            return

        failed = [c for c in self.checks if not c.passed]
        failures = [c for c in failed if c.severity == ValidationSeverity.ERROR] or failed
        raise ValidationError(
            f"Table '{self.table}' failed {len(failures)} checks: "
            + "; ".join(c.message for c in failures),
            stage="validation",
            details={"table": self.table, "failed_checks": [c.name for c in failures]},
        )


class DataValidator:
    """
    Chainable rule suite for one table.

    Every rule reduces to an expression selecting the offending rows; the
    check passes when that selection is empty.

    Example:
        validator = DataValidator("sales")
        validator.add_not_null_check("id_sale")
        validator.add_range_check("quantity", min_value=1)
        result = validator.validate(df)
    """

    def __init__(self, table: str = "table", strict_mode: bool = False):
        self.table = table
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def _add_row_check(
        self,
        name: str,
        column: str,
        offending: Callable[[pl.DataFrame], int],
        describe: str,
        severity: ValidationSeverity,
        details: Optional[Dict[str, Any]] = None,
    ) -> "DataValidator":
        """Register a check failing on every row counted by ``offending``"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Column '{column}' not found",
                )

            failed = offending(df)
            return ValidationCheck(
                name=name,
                passed=failed == 0,
                severity=severity,
                message=f"{self.table}.{column}: {failed} {describe}" if failed else f"{self.table}.{column}: ok",
                details={**(details or {}), "failed_count": failed},
                failed_rows=failed,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self._add_row_check(
            f"not_null_{column}",
            column,
            lambda df: df[column].null_count(),
            "null values",
            severity,
        )

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self._add_row_check(
            f"unique_{column}",
            column,
            lambda df: df.height - df[column].n_unique(),
            "duplicate values",
            severity,
        )

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Inclusive bounds; a missing bound is unchecked"""
        outside = pl.lit(False)
        if min_value is not None:
            outside = outside | (pl.col(column) < min_value)
        if max_value is not None:
            outside = outside | (pl.col(column) > max_value)

        return self._add_row_check(
            f"range_{column}",
            column,
            lambda df: df.filter(outside).height,
            f"values outside [{min_value}, {max_value}]",
            severity,
            details={"min": min_value, "max": max_value},
        )

    def add_positive_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self._add_row_check(
            f"positive_{column}",
            column,
            lambda df: df.filter(pl.col(column) <= 0).height,
            "non-positive values",
            severity,
        )

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self._add_row_check(
            f"enum_{column}",
            column,
            lambda df: df.filter(
                pl.col(column).is_not_null() & ~pl.col(column).is_in(allowed_values)
            ).height,
            f"values not in {allowed_values}",
            severity,
            details={"allowed_values": allowed_values},
        )

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Every non-null value must exist in ``reference_df[reference_column]``"""
        keys = reference_df.select(pl.col(reference_column).alias(column)).unique()

        return self._add_row_check(
            f"ref_integrity_{column}",
            column,
            lambda df: df.filter(pl.col(column).is_not_null()).join(keys, on=column, how="anti").height,
            f"orphan references to {reference_column}",
            severity,
        )

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """Run every registered check against ``df``"""
        started_at = datetime.utcnow()
        checks = [check(df) for check in self._checks]

        for check in checks:
            if not check.passed:
                logger.warning(
                    "Validation check failed",
                    table=self.table,
                    check=check.name,
                    severity=check.severity.value,
                    failed_rows=check.failed_rows,
                )

        errors = [c for c in checks if not c.passed and c.severity == ValidationSeverity.ERROR]
        warnings = [c for c in checks if not c.passed and c.severity == ValidationSeverity.WARNING]

        if errors or (warnings and self.strict_mode):
            status = ValidationStatus.FAILED
        elif warnings:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.debug("Table validated", table=self.table, rows=df.height, status=status.value)

        return ValidationResult(
            table=self.table,
            status=status,
            total_checks=len(checks),
            passed_checks=sum(1 for c in checks if c.passed),
            failed_checks=len(errors),
            warning_count=len(warnings),
            checks=checks,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )



# Pre-built validators for the star schema tables
def create_clients_validator() -> DataValidator:
    """Create pre-configured validator for the client dimension"""
    return (
        DataValidator("clients")
        .add_not_null_check("id_client")
        .add_unique_check("id_client")
        .add_range_check("age", min_value=18, max_value=75)
        .add_enum_check("segment", SEGMENTS)
        .add_enum_check("gender", ["M", "F"], severity=ValidationSeverity.WARNING)
    )


def create_products_validator() -> DataValidator:
    """Create pre-configured validator for the product dimension"""
    return (
        DataValidator("products")
        .add_not_null_check("id_product")
        .add_unique_check("id_product")
        .add_not_null_check("category")
        .add_positive_check("unit_price")
        .add_range_check("production_cost", min_value=0)
    )


def create_stores_validator() -> DataValidator:
    """Create pre-configured validator for the store dimension"""
    return (
        DataValidator("stores")
        .add_not_null_check("id_store")
        .add_unique_check("id_store")
        .add_positive_check("surface_m2")
    )


def create_time_validator() -> DataValidator:
    """Create pre-configured validator for the calendar dimension"""
    return (
        DataValidator("time")
        .add_not_null_check("id_date")
        .add_unique_check("id_date")
        .add_unique_check("date")
        .add_range_check("month", min_value=1, max_value=12)
    )


def create_sales_validator() -> DataValidator:
    """Create pre-configured validator for the sales fact table"""
    return (
        DataValidator("sales")
        .add_not_null_check("id_sale")
        .add_unique_check("id_sale")
        .add_not_null_check("id_client")
        .add_not_null_check("id_product")
        .add_not_null_check("id_date")
        .add_not_null_check("id_store")
        .add_range_check("quantity", min_value=1)
        .add_range_check("discount_percent", min_value=0, max_value=100)
    )


def validate_star_schema(schema: StarSchema) -> Dict[str, ValidationResult]:
    """
    Validate every table of the star schema.

    Referential integrity is left to the warehouse join, which applies the
    configured missing reference policy.

    Raises:
        ValidationError: the first table with a failed error check
    """
    validators = {
        "clients": (create_clients_validator(), schema.clients),
        "products": (create_products_validator(), schema.products),
        "stores": (create_stores_validator(), schema.stores),
        "time": (create_time_validator(), schema.time),
        "sales": (create_sales_validator(), schema.sales),
    }

    results = {}
    for table, (validator, df) in validators.items():
        result = validator.validate(df)
        result.raise_for_status()
        results[table] = result

    logger.info(
        "Star schema validated",
        tables=len(results),
        checks=sum(r.total_checks for r in results.values()),
    )
    return results
