"""
ML Feature Engineering

Client-level features for segmentation:
- Client profile (age, total purchases, transaction count, average basket)
- Feature matrix extraction
- Z-score standardization
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import polars as pl
from scipy import stats
import structlog

from retail_dw.analytics.olap import Measure, aggregate_by
from retail_dw.exceptions import DegenerateInputError

logger = structlog.get_logger(__name__)

CLUSTERING_FEATURES: Tuple[str, ...] = (
    "age",
    "total_purchases",
    "nb_transactions",
    "avg_basket",
)


@dataclass
class StandardizedFeatures:
    """Standardized matrix plus the statistics used to produce it"""
    values: np.ndarray
    means: np.ndarray
    stds: np.ndarray

    @property
    def zero_variance(self) -> np.ndarray:
        """Mask of columns that were constant (standardized to 0)"""
        return ~(self.stds > 0)


def build_client_profile(warehouse: pl.DataFrame) -> pl.DataFrame:
    """
    Aggregate the warehouse into one purchasing profile per client.

    Returns:
        DataFrame with id_client, age, segment, total_purchases,
        nb_transactions, avg_basket sorted by id_client
    """
    profile = aggregate_by(
        warehouse,
        ["id_client", "age", "segment"],
        [
            Measure("total_purchases", "total_amount", "sum"),
            Measure("nb_transactions", "id_sale", "n_unique"),
            Measure("avg_basket", "total_amount", "mean"),
        ],
    )
    logger.info(f"Computed profiles for {len(profile)} clients")
    return profile


def feature_matrix(
    profile: pl.DataFrame,
    features: Sequence[str] = CLUSTERING_FEATURES,
) -> np.ndarray:
    """Extract the clustering features as a float matrix (rows follow profile order)"""
    return profile.select([pl.col(f).cast(pl.Float64) for f in features]).to_numpy()


def standardize(values: np.ndarray) -> StandardizedFeatures:
    """
    Standardize each column to zero mean and unit sample standard deviation.

    Columns with zero variance, and every column of a single-row matrix,
    are mapped to 0 instead of dividing by zero.

    Raises:
        DegenerateInputError: the matrix has no rows
    """
    values = np.asarray(values, dtype=float)
    if values.ndim == 1:
        values = values.reshape(-1, 1)

    n_rows = values.shape[0]
    if n_rows == 0:
        raise DegenerateInputError("Cannot standardize an empty population", stage="standardization")

    # Constant columns are decided on the raw range, never on the computed std
    zero_variance = np.ptp(values, axis=0) == 0

    means = values.mean(axis=0)
    stds = np.zeros(values.shape[1])
    scaled = np.zeros_like(values)
    if (~zero_variance).any():
        varying = values[:, ~zero_variance]
        stds[~zero_variance] = varying.std(axis=0, ddof=1)
        scaled[:, ~zero_variance] = stats.zscore(varying, axis=0, ddof=1)

    if zero_variance.any():
        logger.warning(
            "Zero-variance features standardized to 0",
            columns=np.flatnonzero(zero_variance).tolist(),
        )

    return StandardizedFeatures(values=scaled, means=means, stds=stds)
