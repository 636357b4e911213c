"""
OLAP Analytics Module
"""
from .olap import (
    Measure,
    aggregate_by,
    build_olap_summaries,
    rank_summaries,
    sales_by_category,
    sales_by_month,
    store_performance,
    top_products_by_category,
)
from .rfm import build_rfm, top_clients
from .kpi import ChartSeries, KPIReport, build_chart_series, compute_kpis, growth_rate

__all__ = [
    "Measure",
    "aggregate_by",
    "build_olap_summaries",
    "rank_summaries",
    "sales_by_category",
    "sales_by_month",
    "store_performance",
    "top_products_by_category",
    "build_rfm",
    "top_clients",
    "ChartSeries",
    "KPIReport",
    "build_chart_series",
    "compute_kpis",
    "growth_rate",
]
