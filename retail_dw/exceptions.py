"""
Pipeline Exceptions

Every error carries the pipeline stage that detected it and a details
mapping (offending keys, counts) so the caller can decide whether to abort
the run or skip the stage.
"""

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base class for all analytics pipeline errors"""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.stage = stage
        self.details = details or {}
        self.message = message
        super().__init__(f"[{stage}] {message}" if stage else message)


class ValidationError(AnalyticsError):
    """Malformed or out-of-range field values"""

    pass


class MissingReferenceError(AnalyticsError):
    """A fact row references a dimension key that does not exist"""

    pass


class InsufficientDataError(AnalyticsError):
    """Not enough records to run the requested computation"""

    pass


class DegenerateInputError(AnalyticsError):
    """Empty population for an aggregation or statistic"""

    pass
