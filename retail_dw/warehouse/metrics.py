"""
Derived Financial Metrics

Row-level financial fields of a sale:

    price_before_discount = quantity * unit_price
    discount_amount       = price_before_discount * discount_percent / 100
    total_amount          = price_before_discount - discount_amount
    total_cost            = quantity * production_cost
    net_profit            = total_amount - total_cost

Both the scalar and the vectorized form recompute every field from the base
columns, so applying them again to an enriched row yields the same values.
"""

from dataclasses import dataclass

import polars as pl

from retail_dw.exceptions import ValidationError

DERIVED_COLUMNS = [
    "price_before_discount",
    "discount_amount",
    "total_amount",
    "total_cost",
    "net_profit",
]


@dataclass(frozen=True)
class SaleMetrics:
    """Financial fields of a single sale"""
    price_before_discount: float
    discount_amount: float
    total_amount: float
    total_cost: float
    net_profit: float


def compute_sale_metrics(
    quantity: int,
    unit_price: float,
    production_cost: float,
    discount_percent: float,
) -> SaleMetrics:
    """Compute the derived fields of one sale"""
    if quantity < 1:
        raise ValidationError(
            f"Quantity must be at least 1, got {quantity}",
            stage="metrics",
            details={"quantity": quantity},
        )
    if not 0 <= discount_percent <= 100:
        raise ValidationError(
            f"Discount must be within [0, 100], got {discount_percent}",
            stage="metrics",
            details={"discount_percent": discount_percent},
        )

    price_before_discount = quantity * unit_price
    discount_amount = price_before_discount * (discount_percent / 100)
    total_amount = price_before_discount - discount_amount
    total_cost = quantity * production_cost

    return SaleMetrics(
        price_before_discount=price_before_discount,
        discount_amount=discount_amount,
        total_amount=total_amount,
        total_cost=total_cost,
        net_profit=total_amount - total_cost,
    )


def add_derived_metrics(df: pl.DataFrame) -> pl.DataFrame:
    """
    Add (or overwrite) the derived financial columns on joined sales.

    Args:
        df: Sales joined with products (needs quantity, unit_price,
            production_cost, discount_percent)

    Raises:
        ValidationError: quantity below 1 or discount outside [0, 100]
    """
    invalid = df.filter(
        (pl.col("quantity") < 1)
        | (pl.col("discount_percent") < 0)
        | (pl.col("discount_percent") > 100)
    )
    if invalid.height > 0:
        ids = invalid["id_sale"].to_list() if "id_sale" in invalid.columns else []
        raise ValidationError(
            f"{invalid.height} sales have an invalid quantity or discount",
            stage="metrics",
            details={"id_sale": ids[:10], "invalid_count": invalid.height},
        )

    df = df.with_columns(
        (pl.col("quantity") * pl.col("unit_price")).alias("price_before_discount"),
        (pl.col("quantity") * pl.col("production_cost")).alias("total_cost"),
    )
    df = df.with_columns(
        (pl.col("price_before_discount") * (pl.col("discount_percent") / 100))
        .alias("discount_amount")
    )
    df = df.with_columns(
        (pl.col("price_before_discount") - pl.col("discount_amount")).alias("total_amount")
    )
    return df.with_columns(
        (pl.col("total_amount") - pl.col("total_cost")).alias("net_profit")
    )
