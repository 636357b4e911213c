"""
Anomaly Detection Module

Z-score outlier detection over transaction amounts. A single static pass:
every value whose standardized distance from the population mean exceeds
the threshold is flagged. Standardization follows the client feature rule
(sample standard deviation, zero variance maps every score to 0).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

import numpy as np
import polars as pl
import structlog

from retail_dw.config import get_settings
from retail_dw.exceptions import DegenerateInputError, ValidationError
from retail_dw.ml.features import StandardizedFeatures, standardize

logger = structlog.get_logger(__name__)


class AnomalyType(str, Enum):
    """Types of anomalies detected"""
    SPIKE = "spike"  # Above the mean
    DROP = "drop"  # Below the mean


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class Baseline:
    """Fixed statistics to score values against"""
    mean: float
    std: float


@dataclass
class AnomalyFlag:
    """Single flagged record"""
    record_id: Any
    value: float
    z_score: float
    anomaly_type: AnomalyType
    severity: AnomalySeverity


@dataclass
class AnomalyReport:
    """Complete anomaly detection report"""
    metric_name: str
    detected_at: datetime
    records_checked: int
    threshold: float
    mean: float
    std: float
    anomalies: List[AnomalyFlag] = field(default_factory=list)
    scores: Optional[pl.DataFrame] = None  # id column + z_score for every checked row

    @property
    def anomalies_found(self) -> int:
        return len(self.anomalies)

    @property
    def anomaly_rate(self) -> float:
        """Percentage of checked records that were flagged"""
        if self.records_checked == 0:
            return 0.0
        return self.anomalies_found / self.records_checked * 100

    @property
    def critical_count(self) -> int:
        return sum(
            1 for a in self.anomalies
            if a.severity in (AnomalySeverity.CRITICAL, AnomalySeverity.HIGH)
        )

    def to_frame(self, id_column: str = "id_sale") -> pl.DataFrame:
        """Flagged records as an export table, largest |z| first"""
        rows = [
            {
                id_column: a.record_id,
                self.metric_name: a.value,
                "z_score": a.z_score,
                "anomaly_type": a.anomaly_type.value,
                "severity": a.severity.value,
            }
            for a in self.anomalies
        ]
        schema = {
            id_column: pl.Int64,
            self.metric_name: pl.Float64,
            "z_score": pl.Float64,
            "anomaly_type": pl.Utf8,
            "severity": pl.Utf8,
        }
        frame = pl.DataFrame(rows, schema=schema)
        return frame.sort(pl.col("z_score").abs(), descending=True)


class AnomalyDetector:
    """
    Z-score anomaly detector.

    Example:
        detector = AnomalyDetector(z_threshold=3.0)
        report = detector.detect(warehouse, column="total_amount")
    """

    def __init__(self, z_threshold: float = 3.0):
        if z_threshold <= 0:
            raise ValueError("z_threshold must be positive")
        self.z_threshold = z_threshold

    def zscores(
        self,
        values: np.ndarray,
        baseline: Optional[Baseline] = None,
    ) -> np.ndarray:
        """
        Standardize values against the population or a fixed baseline.

        Raises:
            DegenerateInputError: no values
        """
        values = np.asarray(values, dtype=float)
        if baseline is None:
            return self._population(values).values[:, 0]

        if len(values) == 0:
            raise DegenerateInputError("Cannot score an empty population", stage="anomaly_detection")
        if baseline.std <= 0:
            return np.zeros_like(values)
        return (values - baseline.mean) / baseline.std

    @staticmethod
    def _population(values: np.ndarray) -> StandardizedFeatures:
        if len(values) == 0:
            raise DegenerateInputError("Cannot score an empty population", stage="anomaly_detection")
        return standardize(values)

    def _severity(self, z_score: float) -> AnomalySeverity:
        magnitude = abs(z_score)
        if magnitude > self.z_threshold * 2:
            return AnomalySeverity.CRITICAL
        if magnitude > self.z_threshold * 1.5:
            return AnomalySeverity.HIGH
        return AnomalySeverity.MEDIUM

    def detect(
        self,
        df: pl.DataFrame,
        column: str = "total_amount",
        id_column: str = "id_sale",
        baseline: Optional[Baseline] = None,
    ) -> AnomalyReport:
        """
        Flag every row whose |z-score| on ``column`` exceeds the threshold.

        Args:
            df: Rows to check
            column: Numeric column to score
            id_column: Column identifying each row in the report
            baseline: Optional fixed mean/std instead of population statistics
        """
        for col in (column, id_column):
            if col not in df.columns:
                raise ValidationError(
                    f"Column '{col}' not found",
                    stage="anomaly_detection",
                    details={"column": col},
                )

        values = df[column].cast(pl.Float64).to_numpy()
        ids = df[id_column].to_list()
        if baseline is None:
            population = self._population(values)
            z_scores = population.values[:, 0]
            mean, std = float(population.means[0]), float(population.stds[0])
        else:
            z_scores = self.zscores(values, baseline)
            mean, std = baseline.mean, baseline.std

        anomalies = []
        for record_id, value, z_score in zip(ids, values, z_scores):
            if abs(z_score) > self.z_threshold:
                anomalies.append(AnomalyFlag(
                    record_id=record_id,
                    value=float(value),
                    z_score=float(z_score),
                    anomaly_type=AnomalyType.SPIKE if z_score > 0 else AnomalyType.DROP,
                    severity=self._severity(z_score),
                ))

        report = AnomalyReport(
            metric_name=column,
            detected_at=datetime.utcnow(),
            records_checked=len(values),
            threshold=self.z_threshold,
            mean=mean,
            std=std,
            anomalies=anomalies,
            scores=pl.DataFrame([
                df[id_column],
                pl.Series("z_score", z_scores, dtype=pl.Float64),
            ]),
        )

        if report.critical_count > 0:
            logger.warning(
                f"Critical anomalies detected: {report.critical_count}",
                total_anomalies=report.anomalies_found,
                metric=column,
            )
        else:
            logger.info(
                f"Anomaly detection complete: {report.anomalies_found} anomalies found",
                metric=column,
                records=report.records_checked,
            )

        return report


def detect_transaction_anomalies(
    warehouse: pl.DataFrame,
    z_threshold: Optional[float] = None,
) -> AnomalyReport:
    """
    Convenience function flagging unusual sale amounts in the warehouse.
    """
    detector = AnomalyDetector(
        z_threshold=get_settings().anomaly.z_threshold if z_threshold is None else z_threshold,
    )
    return detector.detect(warehouse, column="total_amount", id_column="id_sale")
