"""
OLAP Aggregation Module

Grouped reductions over the warehouse table:
- Generic "group by keys, reduce measures" engine
- Sales by category, by month and by store
- Top products per category

Reductions run over rows in id_sale order so that the summaries do not
depend on how the input happened to be ordered.
"""

from dataclasses import dataclass
from typing import Dict, Sequence

import polars as pl
import structlog

from retail_dw.exceptions import DegenerateInputError, ValidationError

logger = structlog.get_logger(__name__)

AGGREGATIONS = ("sum", "mean", "count", "n_unique", "max", "min")


@dataclass(frozen=True)
class Measure:
    """One reduced column of a summary table"""
    name: str
    column: str
    how: str = "sum"

    def __post_init__(self):
        if self.how not in AGGREGATIONS:
            raise ValueError(f"Unknown aggregation '{self.how}', expected one of {AGGREGATIONS}")

    def expr(self) -> pl.Expr:
        col = pl.col(self.column)
        if self.how == "sum":
            expr = col.sum()
        elif self.how == "mean":
            expr = col.mean()
        elif self.how == "count":
            expr = pl.len().cast(pl.Int64)
        elif self.how == "n_unique":
            expr = col.n_unique().cast(pl.Int64)
        elif self.how == "max":
            expr = col.max()
        else:
            expr = col.min()
        return expr.alias(self.name)


def aggregate_by(
    df: pl.DataFrame,
    keys: Sequence[str],
    measures: Sequence[Measure],
    order_column: str = "id_sale",
) -> pl.DataFrame:
    """
    Group ``df`` by ``keys`` and reduce each measure.

    Args:
        df: Input rows
        keys: Grouping columns
        measures: Reductions to compute per group
        order_column: Column fixing the reduction order, when present

    Returns:
        One row per distinct key combination, sorted by keys

    Raises:
        DegenerateInputError: input has no rows
        ValidationError: a key or measure column is missing
    """
    keys = list(keys)
    if df.height == 0:
        raise DegenerateInputError(
            "Cannot aggregate an empty table",
            stage="aggregation",
            details={"keys": keys},
        )

    needed = keys + [m.column for m in measures if m.how != "count"]
    missing = sorted({c for c in needed if c not in df.columns})
    if missing:
        raise ValidationError(
            f"Aggregation columns not found: {missing}",
            stage="aggregation",
            details={"missing_columns": missing},
        )

    if order_column in df.columns:
        df = df.sort(order_column)

    result = df.group_by(keys, maintain_order=True).agg([m.expr() for m in measures])
    return result.sort(keys)


def rank_summaries(
    df: pl.DataFrame,
    by: str,
    key: str,
    descending: bool = True,
) -> pl.DataFrame:
    """Sort by a measure, breaking ties by ascending key"""
    return df.sort([by, key], descending=[descending, False])


def sales_by_category(warehouse: pl.DataFrame) -> pl.DataFrame:
    """Revenue and transaction count per category, highest revenue first"""
    summary = aggregate_by(
        warehouse,
        ["category"],
        [
            Measure("total_amount", "total_amount", "sum"),
            Measure("nb_transactions", "id_sale", "count"),
        ],
    )
    return rank_summaries(summary, by="total_amount", key="category")


def sales_by_month(warehouse: pl.DataFrame) -> pl.DataFrame:
    """Revenue per calendar month in chronological order"""
    return aggregate_by(
        warehouse,
        ["year", "month", "month_name"],
        [
            Measure("total_amount", "total_amount", "sum"),
            Measure("nb_transactions", "id_sale", "count"),
        ],
    ).sort(["year", "month"])


def store_performance(warehouse: pl.DataFrame) -> pl.DataFrame:
    """
    Revenue, profit and sales density per store.

    ``sales_per_m2`` is revenue divided by store surface, rounded to
    2 decimals. Stores are ranked by revenue, ties by id_store.
    """
    summary = aggregate_by(
        warehouse,
        ["id_store", "store_name", "surface_m2"],
        [
            Measure("total_amount", "total_amount", "sum"),
            Measure("net_profit", "net_profit", "sum"),
            Measure("nb_transactions", "id_sale", "count"),
        ],
    )
    summary = summary.with_columns(
        (pl.col("total_amount") / pl.col("surface_m2")).round(2).alias("sales_per_m2")
    )
    return rank_summaries(summary, by="total_amount", key="id_store")


def top_products_by_category(warehouse: pl.DataFrame, n: int = 3) -> pl.DataFrame:
    """Best ``n`` products of each category by revenue"""
    summary = aggregate_by(
        warehouse,
        ["category", "product_name"],
        [Measure("total_amount", "total_amount", "sum")],
    )
    summary = summary.sort(
        ["category", "total_amount", "product_name"],
        descending=[False, True, False],
    )
    return summary.group_by("category", maintain_order=True).head(n)


def build_olap_summaries(warehouse: pl.DataFrame) -> Dict[str, pl.DataFrame]:
    """All OLAP summary tables keyed by name"""
    summaries = {
        "sales_category": sales_by_category(warehouse),
        "sales_month": sales_by_month(warehouse),
        "store_performance": store_performance(warehouse),
        "top_products": top_products_by_category(warehouse),
    }
    logger.info(
        "OLAP summaries computed",
        categories=summaries["sales_category"].height,
        months=summaries["sales_month"].height,
        stores=summaries["store_performance"].height,
    )
    return summaries
