"""
Warehouse Consolidation

Joins the sales fact table with its four dimensions into one denormalized
analytical table. Each dimension is hash-joined on its key. Referential
integrity is checked before joining so that unmatched sales are either
reported (fail policy) or dropped with a warning (drop policy), never lost
silently.
"""

from enum import Enum
from typing import List, Optional, Tuple, Union

import polars as pl
import structlog

from retail_dw.config import get_settings
from retail_dw.exceptions import MissingReferenceError, ValidationError
from .metrics import add_derived_metrics
from .schema import StarSchema

logger = structlog.get_logger(__name__)


class MissingReferencePolicy(str, Enum):
    """How to treat sales whose dimension key does not resolve"""
    FAIL = "fail"
    DROP = "drop"


def _dimension_joins(schema: StarSchema) -> List[Tuple[str, str, pl.DataFrame]]:
    """(dimension name, key column, dimension table) in join order"""
    stores = schema.stores.rename({"city": "store_city"})
    return [
        ("clients", "id_client", schema.clients),
        ("products", "id_product", schema.products),
        ("time", "id_date", schema.time),
        ("stores", "id_store", stores),
    ]


def _check_unique_keys(dimension: str, key: str, table: pl.DataFrame) -> None:
    duplicates = table.filter(pl.col(key).is_duplicated())
    if duplicates.height > 0:
        raise ValidationError(
            f"Dimension '{dimension}' has duplicate values in '{key}'",
            stage="join",
            details={
                "dimension": dimension,
                "key": key,
                "duplicate_keys": sorted(set(duplicates[key].to_list()))[:10],
            },
        )


def find_orphan_sales(
    sales: pl.DataFrame,
    key: str,
    dimension_table: pl.DataFrame,
) -> pl.DataFrame:
    """Sales whose ``key`` has no match in the dimension table"""
    return sales.join(dimension_table.select(key), on=key, how="anti")


def build_warehouse(
    schema: StarSchema,
    policy: Optional[Union[MissingReferencePolicy, str]] = None,
    with_metrics: bool = True,
) -> pl.DataFrame:
    """
    Consolidate the star schema into the warehouse table.

    Args:
        schema: Star schema (conformed to the declared dtypes)
        policy: Missing reference policy, defaults to configuration
        with_metrics: Also compute the derived financial columns

    Returns:
        One row per resolved sale, sorted by id_sale

    Raises:
        MissingReferenceError: a sale references an unknown key under FAIL
        ValidationError: a dimension key is not unique
    """
    if policy is None:
        policy = get_settings().warehouse.missing_reference_policy
    policy = MissingReferencePolicy(policy)

    sales = schema.sales
    input_rows = sales.height
    logger.info("Consolidating warehouse", sales=input_rows, policy=policy.value)

    dimensions = _dimension_joins(schema)

    for dimension, key, table in dimensions:
        _check_unique_keys(dimension, key, table)

        orphans = find_orphan_sales(sales, key, table)
        if orphans.height == 0:
            continue

        if policy == MissingReferencePolicy.FAIL:
            raise MissingReferenceError(
                f"{orphans.height} sales reference unknown '{key}' values in '{dimension}'",
                stage="join",
                details={
                    "dimension": dimension,
                    "key": key,
                    "orphan_count": orphans.height,
                    "missing_keys": sorted(set(orphans[key].to_list()))[:10],
                    "id_sale": orphans["id_sale"].to_list()[:10],
                },
            )

        logger.warning(
            "Dropping sales with unknown dimension keys",
            dimension=dimension,
            key=key,
            dropped=orphans.height,
        )
        sales = sales.join(orphans.select("id_sale"), on="id_sale", how="anti")

    warehouse = sales
    for _, key, table in dimensions:
        warehouse = warehouse.join(table, on=key, how="inner")

    warehouse = warehouse.sort("id_sale")

    if with_metrics:
        warehouse = add_derived_metrics(warehouse)

    logger.info(
        "Warehouse consolidated",
        input_rows=input_rows,
        output_rows=warehouse.height,
        rows_dropped=input_rows - warehouse.height,
        unique_clients=warehouse["id_client"].n_unique(),
        products_sold=warehouse["id_product"].n_unique(),
    )

    return warehouse
