"""
Test Suite Configuration
"""
from datetime import date

import numpy as np
import polars as pl
import pytest

from retail_dw.config import Settings
from retail_dw.warehouse.joins import build_warehouse
from retail_dw.warehouse.schema import StarSchema, build_time_dimension


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(2024)


@pytest.fixture
def sample_clients_df() -> pl.DataFrame:
    """Four clients, the last one without any sale"""
    return pl.DataFrame({
        "id_client": [1, 2, 3, 4],
        "name": ["Amina Benali", "Karim Haddad", "Lina Cherif", "Yacine Saidi"],
        "age": [30, 45, 60, 25],
        "gender": ["F", "M", "F", "M"],
        "city": ["Alger", "Oran", "Blida", "Oran"],
        "segment": ["Premium", "Standard", "Economy", "Standard"],
    })


@pytest.fixture
def sample_products_df() -> pl.DataFrame:
    """Three products with margin rates 40, 60 and 60"""
    return pl.DataFrame({
        "id_product": [1, 2, 3],
        "product_name": ["Laptop", "Shirt", "Rice"],
        "category": ["Electronics", "Clothing", "Food"],
        "unit_price": [1000.0, 50.0, 10.0],
        "production_cost": [600.0, 20.0, 4.0],
    })


@pytest.fixture
def sample_stores_df() -> pl.DataFrame:
    return pl.DataFrame({
        "id_store": [1, 2],
        "store_name": ["Store Center", "Store North"],
        "city": ["Alger", "Oran"],
        "surface_m2": [500.0, 800.0],
    })


@pytest.fixture
def sample_time_df() -> pl.DataFrame:
    """2023-12-30 (id 1) through 2024-01-02 (id 4)"""
    return build_time_dimension(date(2023, 12, 30), date(2024, 1, 2))


@pytest.fixture
def sample_sales_df() -> pl.DataFrame:
    """
    Five sales; resulting total_amount values:
    1000.0, 90.0, 50.0, 800.0, 142.5
    """
    return pl.DataFrame({
        "id_sale": [1, 2, 3, 4, 5],
        "id_client": [1, 1, 2, 2, 3],
        "id_product": [1, 2, 3, 1, 2],
        "id_date": [1, 3, 2, 4, 4],
        "id_store": [1, 2, 1, 2, 1],
        "quantity": [1, 2, 5, 1, 3],
        "discount_percent": [0, 10, 0, 20, 5],
    })


@pytest.fixture
def sample_schema(
    sample_clients_df,
    sample_products_df,
    sample_stores_df,
    sample_time_df,
    sample_sales_df,
) -> StarSchema:
    """Conformed star schema built from the sample tables"""
    return StarSchema(
        clients=sample_clients_df,
        products=sample_products_df,
        stores=sample_stores_df,
        time=sample_time_df,
        sales=sample_sales_df,
    ).conformed()


@pytest.fixture
def sample_warehouse(sample_schema) -> pl.DataFrame:
    return build_warehouse(sample_schema, policy="fail")


@pytest.fixture
def separated_profile() -> pl.DataFrame:
    """Nine clients forming three well-separated groups of three"""
    return pl.DataFrame({
        "id_client": list(range(1, 10)),
        "age": [20, 21, 22, 45, 46, 47, 70, 71, 72],
        "segment": ["Economy"] * 3 + ["Standard"] * 3 + ["Premium"] * 3,
        "total_purchases": [
            1000.0, 1100.0, 1050.0,
            50000.0, 51000.0, 50500.0,
            150000.0, 152000.0, 151000.0,
        ],
        "nb_transactions": [1, 1, 2, 6, 7, 6, 14, 15, 14],
        "avg_basket": [
            1000.0, 1100.0, 525.0,
            8333.0, 7285.0, 8416.0,
            10714.0, 10133.0, 10785.0,
        ],
    })
