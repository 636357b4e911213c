"""
Key Performance Indicators and Chart Series

Scalar indicators for the executive dashboard and the data series that
feed the summary charts (category totals, monthly evolution, store
performance, client segment distribution, client clusters).
"""

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

import polars as pl
import structlog

from retail_dw.exceptions import DegenerateInputError, ValidationError
from .olap import sales_by_category, sales_by_month, store_performance

if TYPE_CHECKING:
    from retail_dw.ml.clustering import ClientSegmentation

logger = structlog.get_logger(__name__)


@dataclass
class KPIReport:
    """Executive dashboard indicators"""
    total_revenue: float
    total_net_profit: float
    average_margin_rate: float
    transaction_count: int
    active_clients: int
    products_sold: int
    average_basket: float
    earlier_year: Optional[int]
    later_year: Optional[int]
    earlier_revenue: float
    later_revenue: float
    growth_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChartSeries:
    """Data series behind the summary charts"""
    category_totals: pl.DataFrame
    monthly_totals: pl.DataFrame
    store_totals: pl.DataFrame
    segment_distribution: pl.DataFrame
    cluster_points: Optional[pl.DataFrame] = None  # id_client, cluster, standardized x/y
    cluster_centers: Optional[pl.DataFrame] = None


def growth_rate(earlier: float, later: float) -> float:
    """Period-over-period growth in percent, 0 when the earlier period is 0"""
    if earlier == 0:
        return 0.0
    return (later - earlier) / earlier * 100


def revenue_for_year(warehouse: pl.DataFrame, year: int) -> float:
    return float(warehouse.filter(pl.col("year") == year)["total_amount"].sum())


def compute_kpis(
    warehouse: pl.DataFrame,
    earlier_year: Optional[int] = None,
    later_year: Optional[int] = None,
) -> KPIReport:
    """
    Compute dashboard indicators.

    Growth compares ``earlier_year`` with ``later_year``; by default the two
    most recent years present in the warehouse. With a single year of data
    the growth rate is 0.

    Raises:
        DegenerateInputError: empty warehouse
        ValidationError: only one of the two years is given
    """
    if warehouse.height == 0:
        raise DegenerateInputError("Cannot compute KPIs on an empty warehouse", stage="kpi")

    if (earlier_year is None) != (later_year is None):
        raise ValidationError(
            "Both earlier_year and later_year must be given",
            stage="kpi",
            details={"earlier_year": earlier_year, "later_year": later_year},
        )

    if earlier_year is None:
        years = sorted(warehouse["year"].unique().to_list())
        if len(years) >= 2:
            earlier_year, later_year = years[-2], years[-1]
        else:
            earlier_year = later_year = years[0]

    earlier_revenue = revenue_for_year(warehouse, earlier_year)
    later_revenue = revenue_for_year(warehouse, later_year)
    growth = growth_rate(earlier_revenue, later_revenue) if earlier_year != later_year else 0.0

    report = KPIReport(
        total_revenue=float(warehouse["total_amount"].sum()),
        total_net_profit=float(warehouse["net_profit"].sum()),
        average_margin_rate=float(warehouse["margin_rate"].mean()),
        transaction_count=warehouse.height,
        active_clients=warehouse["id_client"].n_unique(),
        products_sold=warehouse["id_product"].n_unique(),
        average_basket=float(warehouse["total_amount"].mean()),
        earlier_year=earlier_year,
        later_year=later_year,
        earlier_revenue=earlier_revenue,
        later_revenue=later_revenue,
        growth_rate=growth,
    )

    logger.info(
        "KPIs computed",
        total_revenue=round(report.total_revenue, 2),
        transactions=report.transaction_count,
        growth_rate=round(report.growth_rate, 2),
    )
    return report


def segment_distribution(warehouse: pl.DataFrame) -> pl.DataFrame:
    """Number and share of warehouse rows per client segment"""
    counts = warehouse.group_by("segment").agg(pl.len().cast(pl.Int64).alias("count"))
    return counts.with_columns(
        (pl.col("count") / pl.col("count").sum()).alias("share")
    ).sort("segment")


def build_chart_series(
    warehouse: pl.DataFrame,
    segmentation: Optional["ClientSegmentation"] = None,
) -> ChartSeries:
    """
    Collect the series the plotting adapter draws.

    The cluster scatter (total purchases against transaction count, both
    standardized, with the centroids) is only filled when a segmentation
    is given.
    """
    monthly = sales_by_month(warehouse).with_row_index("period_index", offset=1)

    charts = ChartSeries(
        category_totals=sales_by_category(warehouse).select(["category", "total_amount"]),
        monthly_totals=monthly.select([
            pl.col("period_index").cast(pl.Int64),
            "year",
            "month",
            "month_name",
            "total_amount",
        ]),
        store_totals=store_performance(warehouse).select(["store_name", "total_amount"]),
        segment_distribution=segment_distribution(warehouse),
    )

    if segmentation is not None:
        charts.cluster_points = segmentation.scatter_points("total_purchases", "nb_transactions")
        charts.cluster_centers = segmentation.centroids.select(
            ["cluster", "total_purchases", "nb_transactions"]
        )
    return charts
