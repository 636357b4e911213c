"""
Unit Tests - OLAP Aggregation, RFM and KPIs
"""
from datetime import date

import polars as pl
import pytest

from retail_dw.analytics.kpi import (
    build_chart_series,
    compute_kpis,
    growth_rate,
    segment_distribution,
)
from retail_dw.analytics.olap import (
    Measure,
    aggregate_by,
    build_olap_summaries,
    sales_by_category,
    sales_by_month,
    store_performance,
    top_products_by_category,
)
from retail_dw.analytics.rfm import build_rfm, top_clients
from retail_dw.exceptions import DegenerateInputError, ValidationError
from retail_dw.ml.clustering import segment_clients
from retail_dw.ml.features import build_client_profile


class TestAggregateBy:
    """Tests for the grouped aggregation engine"""

    def test_sum_and_count(self):
        df = pl.DataFrame({
            "id_sale": [1, 2, 3, 4],
            "category": ["B", "A", "B", "A"],
            "total_amount": [10.0, 20.0, 30.0, 40.0],
        })

        result = aggregate_by(
            df,
            ["category"],
            [Measure("total", "total_amount", "sum"), Measure("n", "id_sale", "count")],
        )

        assert result["category"].to_list() == ["A", "B"]
        assert result["total"].to_list() == [60.0, 40.0]
        assert result["n"].to_list() == [2, 2]

    def test_order_independent(self, sample_warehouse):
        """Test identical summaries regardless of input row order"""
        shuffled = sample_warehouse.sample(fraction=1.0, shuffle=True, seed=11)

        assert sales_by_category(shuffled).equals(sales_by_category(sample_warehouse))
        assert sales_by_month(shuffled).equals(sales_by_month(sample_warehouse))
        assert store_performance(shuffled).equals(store_performance(sample_warehouse))

    def test_empty_input(self, sample_warehouse):
        with pytest.raises(DegenerateInputError):
            aggregate_by(sample_warehouse.clear(), ["category"], [Measure("t", "total_amount")])

    def test_missing_column(self, sample_warehouse):
        with pytest.raises(ValidationError) as exc_info:
            aggregate_by(sample_warehouse, ["brand"], [Measure("t", "total_amount")])

        assert exc_info.value.details["missing_columns"] == ["brand"]

    def test_unknown_aggregation(self):
        with pytest.raises(ValueError):
            Measure("t", "total_amount", "median")


class TestOlapSummaries:
    """Tests for the category, month and store summaries"""

    def test_category_conservation(self, sample_warehouse):
        """Test per-category totals add up to the warehouse total"""
        summary = sales_by_category(sample_warehouse)

        assert summary["total_amount"].sum() == pytest.approx(sample_warehouse["total_amount"].sum())
        assert summary["nb_transactions"].sum() == sample_warehouse.height

    def test_category_ranking(self, sample_warehouse):
        summary = sales_by_category(sample_warehouse)

        assert summary["category"].to_list() == ["Electronics", "Clothing", "Food"]
        assert summary["total_amount"].to_list() == pytest.approx([1800.0, 232.5, 50.0])

    def test_category_ties_break_alphabetically(self):
        df = pl.DataFrame({
            "id_sale": [1, 2, 3],
            "category": ["Sports", "Home", "Food"],
            "total_amount": [100.0, 100.0, 100.0],
        })

        assert sales_by_category(df)["category"].to_list() == ["Food", "Home", "Sports"]

    def test_monthly_chronological(self, sample_warehouse):
        summary = sales_by_month(sample_warehouse)

        assert summary.select(["year", "month"]).rows() == [(2023, 12), (2024, 1)]
        assert summary["month_name"].to_list() == ["December", "January"]
        assert summary["total_amount"].to_list() == pytest.approx([1050.0, 1032.5])
        assert summary["nb_transactions"].to_list() == [2, 3]

    def test_sales_per_area(self):
        """Test density ranking differs from revenue ranking"""
        df = pl.DataFrame({
            "id_sale": [1, 2],
            "id_store": [1, 2],
            "store_name": ["Store A", "Store B"],
            "surface_m2": [500.0, 1000.0],
            "total_amount": [1_000_000.0, 1_000_000.0],
            "net_profit": [200_000.0, 300_000.0],
        })

        summary = store_performance(df)

        assert summary["sales_per_m2"].to_list() == [2000.0, 1000.0]
        by_density = summary.sort("sales_per_m2", descending=True)["store_name"].to_list()
        assert by_density == ["Store A", "Store B"]

    def test_store_summary(self, sample_warehouse):
        summary = store_performance(sample_warehouse)

        assert summary["id_store"].to_list() == [1, 2]
        assert summary["total_amount"].to_list() == pytest.approx([1192.5, 890.0])
        assert summary["net_profit"].to_list() == pytest.approx([512.5, 250.0])
        assert summary["nb_transactions"].to_list() == [3, 2]

    def test_top_products(self, sample_warehouse):
        top = top_products_by_category(sample_warehouse, n=1)

        assert top["category"].to_list() == ["Clothing", "Electronics", "Food"]
        assert top["product_name"].to_list() == ["Shirt", "Laptop", "Rice"]

    def test_build_olap_summaries(self, sample_warehouse):
        summaries = build_olap_summaries(sample_warehouse)

        assert set(summaries) == {"sales_category", "sales_month", "store_performance", "top_products"}


class TestRFM:
    """Tests for the RFM builder"""

    def test_single_client_three_sales(self):
        """Test frequency, monetary and recency for one client"""
        warehouse = pl.DataFrame({
            "id_sale": [1, 2, 3],
            "id_client": [7, 7, 7],
            "name": ["Client 7"] * 3,
            "segment": ["Standard"] * 3,
            "date": [date(2024, 1, 1), date(2024, 1, 5), date(2024, 1, 10)],
            "total_amount": [100.0, 200.0, 300.0],
        })

        rfm = build_rfm(warehouse, reference_date=date(2024, 1, 31))

        row = rfm.row(0, named=True)
        assert rfm.height == 1
        assert row["frequency"] == 3
        assert row["monetary"] == 600.0
        assert row["recency"] == 21

    def test_defaults_to_last_sale_date(self, sample_warehouse):
        rfm = build_rfm(sample_warehouse)

        assert rfm["id_client"].to_list() == [1, 2, 3]
        assert rfm["recency"].to_list() == [1, 0, 0]
        assert rfm["frequency"].to_list() == [2, 2, 1]
        assert rfm["monetary"].to_list() == pytest.approx([1090.0, 850.0, 142.5])

    def test_clients_without_sales_absent(self, sample_warehouse):
        rfm = build_rfm(sample_warehouse)

        assert 4 not in rfm["id_client"].to_list()

    def test_matches_warehouse(self, sample_warehouse):
        """Test frequency and monetary equal the raw per-client counts and sums"""
        rfm = build_rfm(sample_warehouse)

        for row in rfm.iter_rows(named=True):
            sales = sample_warehouse.filter(pl.col("id_client") == row["id_client"])
            assert row["frequency"] == sales.height
            assert row["monetary"] == pytest.approx(sales["total_amount"].sum())
            assert row["recency"] >= 0

    def test_reference_date_before_last_sale(self, sample_warehouse):
        with pytest.raises(ValidationError):
            build_rfm(sample_warehouse, reference_date=date(2023, 12, 31))

    def test_empty_warehouse(self, sample_warehouse):
        with pytest.raises(DegenerateInputError):
            build_rfm(sample_warehouse.clear())

    def test_top_clients(self, sample_warehouse):
        top = top_clients(build_rfm(sample_warehouse), n=2)

        assert top["id_client"].to_list() == [1, 2]


class TestKPIs:
    """Tests for the dashboard indicators and chart series"""

    def test_growth_rate(self):
        assert growth_rate(100.0, 150.0) == pytest.approx(50.0)
        assert growth_rate(200.0, 100.0) == pytest.approx(-50.0)
        assert growth_rate(0.0, 100.0) == 0.0

    def test_compute_kpis(self, sample_warehouse):
        kpis = compute_kpis(sample_warehouse)

        assert kpis.total_revenue == pytest.approx(2082.5)
        assert kpis.total_net_profit == pytest.approx(762.5)
        assert kpis.average_margin_rate == pytest.approx(52.0)
        assert kpis.transaction_count == 5
        assert kpis.active_clients == 3
        assert kpis.products_sold == 3
        assert kpis.average_basket == pytest.approx(416.5)
        assert (kpis.earlier_year, kpis.later_year) == (2023, 2024)
        assert kpis.growth_rate == pytest.approx((1032.5 - 1050.0) / 1050.0 * 100)

    def test_single_year_growth_is_zero(self, sample_warehouse):
        kpis = compute_kpis(sample_warehouse.filter(pl.col("year") == 2024))

        assert kpis.growth_rate == 0.0

    def test_explicit_years_required_together(self, sample_warehouse):
        with pytest.raises(ValidationError):
            compute_kpis(sample_warehouse, earlier_year=2023)

    def test_segment_distribution(self, sample_warehouse):
        distribution = segment_distribution(sample_warehouse)

        assert distribution["segment"].to_list() == ["Economy", "Premium", "Standard"]
        assert distribution["count"].to_list() == [1, 2, 2]
        assert distribution["share"].sum() == pytest.approx(1.0)

    def test_chart_series(self, sample_warehouse):
        charts = build_chart_series(sample_warehouse)

        assert charts.monthly_totals["period_index"].to_list() == [1, 2]
        assert charts.category_totals.columns == ["category", "total_amount"]
        assert charts.store_totals["store_name"].to_list() == ["Store Center", "Store North"]
        assert charts.cluster_points is None

    def test_cluster_scatter_series(self, sample_warehouse):
        segmentation = segment_clients(
            build_client_profile(sample_warehouse), n_clusters=2, n_init=3, seed=1
        )

        charts = build_chart_series(sample_warehouse, segmentation)

        assert charts.cluster_points["id_client"].to_list() == [1, 2, 3]
        assert charts.cluster_points.columns[-2:] == ["total_purchases", "nb_transactions"]
        assert charts.cluster_centers.columns == ["cluster", "total_purchases", "nb_transactions"]
        assert charts.cluster_centers.height == 2
