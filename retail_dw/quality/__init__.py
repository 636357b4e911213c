"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, validate_star_schema
from .anomaly_detector import AnomalyDetector, AnomalyReport, detect_transaction_anomalies

__all__ = [
    "DataValidator",
    "ValidationResult",
    "validate_star_schema",
    "AnomalyDetector",
    "AnomalyReport",
    "detect_transaction_anomalies",
]
