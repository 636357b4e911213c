"""
RFM Analysis

Per-client Recency, Frequency and Monetary values over observed sales.
Clients without sales do not appear.
"""

from datetime import date
from typing import Optional

import polars as pl
import structlog

from retail_dw.exceptions import DegenerateInputError, ValidationError
from .olap import Measure, aggregate_by

logger = structlog.get_logger(__name__)


def build_rfm(
    warehouse: pl.DataFrame,
    reference_date: Optional[date] = None,
) -> pl.DataFrame:
    """
    Calculate RFM values for every client with at least one sale.

    Args:
        warehouse: Warehouse table (needs id_client, name, segment, date,
            id_sale, total_amount)
        reference_date: Date recency is measured from, defaults to the most
            recent sale date

    Returns:
        DataFrame with id_client, name, segment, last_purchase, recency
        (whole days), frequency and monetary, sorted by id_client

    Raises:
        DegenerateInputError: no sales
        ValidationError: reference date precedes a client's last purchase
    """
    if warehouse.height == 0:
        raise DegenerateInputError("Cannot build RFM from an empty warehouse", stage="rfm")

    max_date = warehouse["date"].max()
    if reference_date is None:
        reference_date = max_date
    elif reference_date < max_date:
        raise ValidationError(
            f"Reference date {reference_date} precedes the last sale date {max_date}",
            stage="rfm",
            details={"reference_date": str(reference_date), "last_sale_date": str(max_date)},
        )

    rfm = aggregate_by(
        warehouse,
        ["id_client", "name", "segment"],
        [
            Measure("last_purchase", "date", "max"),
            Measure("frequency", "id_sale", "count"),
            Measure("monetary", "total_amount", "sum"),
        ],
    )

    rfm = rfm.with_columns(
        (pl.lit(reference_date, dtype=pl.Date) - pl.col("last_purchase"))
        .dt.total_days()
        .cast(pl.Int64)
        .alias("recency")
    ).select([
        "id_client",
        "name",
        "segment",
        "last_purchase",
        "recency",
        "frequency",
        "monetary",
    ])

    logger.info("RFM computed", clients=rfm.height, reference_date=str(reference_date))
    return rfm


def top_clients(rfm: pl.DataFrame, n: int = 10) -> pl.DataFrame:
    """Clients with the highest monetary value, ties by id_client"""
    return rfm.sort(["monetary", "id_client"], descending=[True, False]).head(n)
