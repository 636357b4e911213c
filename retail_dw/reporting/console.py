"""
Console Report

Plain-text rendering of the analytics results for terminal output.
"""

from typing import TYPE_CHECKING, List

import polars as pl

from retail_dw.analytics.kpi import KPIReport
from retail_dw.analytics.rfm import top_clients

if TYPE_CHECKING:
    from retail_dw.pipeline import PipelineResult

WIDTH = 66


def _rule(char: str = "=") -> str:
    return char * WIDTH


def _section(title: str) -> List[str]:
    return ["", _rule(), f" {title}", _rule()]


def _table(df: pl.DataFrame) -> str:
    with pl.Config(tbl_rows=-1, tbl_cols=-1, tbl_hide_dataframe_shape=True):
        return str(df)


def render_dashboard(kpis: KPIReport, currency: str = "DA") -> str:
    """Executive dashboard block"""
    growth_label = f"Growth {kpis.earlier_year}->{kpis.later_year}"
    lines = _section("EXECUTIVE DASHBOARD")
    lines += [
        " FINANCIAL INDICATORS",
        f"  Total Revenue          : {kpis.total_revenue:>18,.0f} {currency}",
        f"  Total Net Profit       : {kpis.total_net_profit:>18,.0f} {currency}",
        f"  Average Margin         : {kpis.average_margin_rate:>18.2f} %",
        f"  {growth_label:<23}: {kpis.growth_rate:>18.2f} %",
        "",
        " COMMERCIAL INDICATORS",
        f"  Number of Transactions : {kpis.transaction_count:>18,d}",
        f"  Active Clients         : {kpis.active_clients:>18,d}",
        f"  Products Sold          : {kpis.products_sold:>18,d}",
        f"  Average Basket         : {kpis.average_basket:>18,.0f} {currency}",
        _rule(),
    ]
    return "\n".join(lines)


def render_report(result: "PipelineResult", months: int = 12, top_n: int = 10) -> str:
    """Full text report of a pipeline run"""
    summaries = result.summaries
    lines = _section("OLAP ANALYSIS")

    lines += ["", "Sales by Category", _table(summaries["sales_category"])]
    lines += ["", f"Monthly Sales (last {months} months)", _table(summaries["sales_month"].tail(months))]
    lines += ["", "Store Performance", _table(summaries["store_performance"])]
    lines += ["", f"Top {top_n} Clients (RFM)", _table(top_clients(result.rfm, top_n))]

    lines += _section("DATA MINING")
    lines += ["", "Top 3 Products by Category", _table(summaries["top_products"])]

    lines += ["", "Cluster Characteristics"]
    for row in result.cluster_summary.iter_rows(named=True):
        lines.append(f"  Cluster {row['cluster']}: {row['n_clients']} clients")
        if row["n_clients"]:
            lines.append(f"    Average age          : {row['avg_age']:.1f} years")
            lines.append(f"    Average purchases    : {row['avg_purchases']:,.0f}")
            lines.append(f"    Average transactions : {row['avg_transactions']:.1f}")

    report = result.anomalies
    lines += [
        "",
        "Anomalous Transactions",
        f"  {report.anomalies_found} anomalies out of {report.records_checked} "
        f"({report.anomaly_rate:.2f}%), |z| > {report.threshold}",
    ]
    if report.anomalies_found:
        lines.append(_table(report.to_frame().head(top_n)))

    lines.append(render_dashboard(result.kpis))
    return "\n".join(lines)
