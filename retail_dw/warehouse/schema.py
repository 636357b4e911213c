"""
Star Schema Definitions

Column layouts of the retail star schema:
- Dimensions: clients, products, stores, calendar days
- Fact: sales

Tables are Polars DataFrames. ``conform_table`` checks that a table carries
the expected columns and casts them to the declared dtypes, so every later
stage can rely on a stable shape regardless of where the data came from.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict

import polars as pl
import structlog

from retail_dw.exceptions import ValidationError

logger = structlog.get_logger(__name__)


CLIENT_SCHEMA: Dict[str, pl.DataType] = {
    "id_client": pl.Int64,
    "name": pl.Utf8,
    "age": pl.Int64,
    "gender": pl.Utf8,
    "city": pl.Utf8,
    "segment": pl.Utf8,
}

PRODUCT_SCHEMA: Dict[str, pl.DataType] = {
    "id_product": pl.Int64,
    "product_name": pl.Utf8,
    "category": pl.Utf8,
    "unit_price": pl.Float64,
    "production_cost": pl.Float64,
}

STORE_SCHEMA: Dict[str, pl.DataType] = {
    "id_store": pl.Int64,
    "store_name": pl.Utf8,
    "city": pl.Utf8,
    "surface_m2": pl.Float64,
}

TIME_SCHEMA: Dict[str, pl.DataType] = {
    "id_date": pl.Int64,
    "date": pl.Date,
    "year": pl.Int32,
    "month": pl.Int32,
    "month_name": pl.Utf8,
    "day": pl.Int32,
    "weekday": pl.Utf8,
}

SALE_SCHEMA: Dict[str, pl.DataType] = {
    "id_sale": pl.Int64,
    "id_client": pl.Int64,
    "id_product": pl.Int64,
    "id_date": pl.Int64,
    "id_store": pl.Int64,
    "quantity": pl.Int64,
    "discount_percent": pl.Int64,
}

SEGMENTS = ["Premium", "Standard", "Economy"]
DISCOUNT_LEVELS = [0, 5, 10, 15, 20]


def conform_table(
    df: pl.DataFrame,
    schema: Dict[str, pl.DataType],
    table: str,
) -> pl.DataFrame:
    """
    Select and cast the columns declared in ``schema``.

    Raises:
        ValidationError: a column is missing or cannot be cast
    """
    missing = [col for col in schema if col not in df.columns]
    if missing:
        raise ValidationError(
            f"Table '{table}' is missing columns: {missing}",
            stage="schema",
            details={"table": table, "missing_columns": missing},
        )

    try:
        return df.select([pl.col(col).cast(dtype) for col, dtype in schema.items()])
    except pl.exceptions.PolarsError as e:
        raise ValidationError(
            f"Table '{table}' has values that do not match the schema: {e}",
            stage="schema",
            details={"table": table},
        ) from e


def with_product_margins(products: pl.DataFrame) -> pl.DataFrame:
    """
    Recompute ``margin`` and ``margin_rate`` from price and cost.

    Raises:
        ValidationError: a product has a non-positive unit price
    """
    invalid = products.filter(pl.col("unit_price") <= 0)
    if invalid.height > 0:
        raise ValidationError(
            f"{invalid.height} products have a non-positive unit_price",
            stage="schema",
            details={"id_product": invalid["id_product"].to_list()[:10]},
        )

    return products.with_columns(
        (pl.col("unit_price") - pl.col("production_cost")).alias("margin"),
    ).with_columns(
        (pl.col("margin") / pl.col("unit_price") * 100).round(2).alias("margin_rate"),
    )


def build_time_dimension(start: date, end: date) -> pl.DataFrame:
    """
    Build a contiguous calendar with one row per day, ids starting at 1.

    Args:
        start: First day (inclusive)
        end: Last day (inclusive)
    """
    if end < start:
        raise ValidationError(
            f"Calendar end {end} is before start {start}",
            stage="schema",
            details={"start": str(start), "end": str(end)},
        )

    dates = pl.date_range(start, end, interval="1d", eager=True).alias("date")
    calendar = pl.DataFrame({"date": dates}).with_row_index("id_date", offset=1)

    calendar = calendar.with_columns([
        pl.col("id_date").cast(pl.Int64),
        pl.col("date").dt.year().cast(pl.Int32).alias("year"),
        pl.col("date").dt.month().cast(pl.Int32).alias("month"),
        pl.col("date").dt.strftime("%B").alias("month_name"),
        pl.col("date").dt.day().cast(pl.Int32).alias("day"),
        pl.col("date").dt.strftime("%A").alias("weekday"),
    ])

    return calendar.select(list(TIME_SCHEMA))


@dataclass
class StarSchema:
    """The four dimension tables and the sales fact table"""
    clients: pl.DataFrame
    products: pl.DataFrame
    stores: pl.DataFrame
    time: pl.DataFrame
    sales: pl.DataFrame

    def conformed(self) -> "StarSchema":
        """Return a copy with every table cast to its declared schema"""
        products = conform_table(self.products, PRODUCT_SCHEMA, "products")

        return StarSchema(
            clients=conform_table(self.clients, CLIENT_SCHEMA, "clients"),
            products=with_product_margins(products),
            stores=conform_table(self.stores, STORE_SCHEMA, "stores"),
            time=conform_table(self.time, TIME_SCHEMA, "time"),
            sales=conform_table(self.sales, SALE_SCHEMA, "sales"),
        )

    def row_counts(self) -> Dict[str, int]:
        return {
            "clients": self.clients.height,
            "products": self.products.height,
            "stores": self.stores.height,
            "time": self.time.height,
            "sales": self.sales.height,
        }
