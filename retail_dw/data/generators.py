"""
Synthetic Data Generator

Generates a reproducible retail star schema for the analytics pipeline.
Includes:
- Clients with demographics and a commercial segment
- Products across five categories with price and production cost
- Five stores with their surface
- A contiguous calendar
- Sales referencing all four dimensions

All randomness flows from one ``numpy.random.Generator``; client names
come from a Faker instance seeded from that same generator.
"""

from pathlib import Path
from typing import Dict, Optional

import numpy as np
import polars as pl
from faker import Faker
import structlog

from retail_dw.config import get_settings
from retail_dw.config.settings import GeneratorSettings
from retail_dw.warehouse.schema import (
    CLIENT_SCHEMA,
    DISCOUNT_LEVELS,
    SALE_SCHEMA,
    STORE_SCHEMA,
    StarSchema,
    build_time_dimension,
    with_product_margins,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CITIES = ["Alger", "Oran", "Constantine", "Annaba", "Blida"]
CATEGORIES = ["Electronics", "Clothing", "Food", "Home", "Sports"]

SEGMENT_WEIGHTS = [
    ("Premium", 0.15),
    ("Standard", 0.55),
    ("Economy", 0.30),
]

STORES = [
    ("Store Center", "Alger", 500.0),
    ("Store North", "Oran", 800.0),
    ("Store South", "Constantine", 600.0),
    ("Store East", "Annaba", 750.0),
    ("Store West", "Blida", 550.0),
]

QUANTITY_WEIGHTS = [0.40, 0.30, 0.20, 0.07, 0.03]
DISCOUNT_WEIGHTS = [0.50, 0.20, 0.15, 0.10, 0.05]

AGE_MEAN = 40
AGE_STD = 15
MIN_AGE = 18
MAX_AGE = 75


# =============================================================================
# GENERATORS
# =============================================================================

class ClientGenerator:
    """Generate the client dimension"""

    def __init__(self, rng: np.random.Generator, faker: Optional[Faker] = None):
        self.rng = rng
        if faker is None:
            faker = Faker()
            faker.seed_instance(int(rng.integers(0, 2**31 - 1)))
        self.faker = faker

    def generate(self, n: int = 300) -> pl.DataFrame:
        """Generate n clients"""
        ages = np.clip(
            np.round(self.rng.normal(AGE_MEAN, AGE_STD, n)),
            MIN_AGE,
            MAX_AGE,
        ).astype(np.int64)

        df = pl.DataFrame({
            "id_client": np.arange(1, n + 1),
            "name": [self.faker.name() for _ in range(n)],
            "age": ages,
            "gender": self.rng.choice(["M", "F"], n),
            "city": self.rng.choice(CITIES, n),
            "segment": self.rng.choice(
                [s[0] for s in SEGMENT_WEIGHTS],
                n,
                p=[s[1] for s in SEGMENT_WEIGHTS],
            ),
        })
        return df.select([pl.col(c).cast(t) for c, t in CLIENT_SCHEMA.items()])


class ProductGenerator:
    """Generate the product catalog"""

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    def generate(self, n: int = 50) -> pl.DataFrame:
        """Generate n products with margins"""
        df = pl.DataFrame({
            "id_product": np.arange(1, n + 1),
            "product_name": [f"Product {i:03d}" for i in range(1, n + 1)],
            "category": self.rng.choice(CATEGORIES, n),
            "unit_price": np.round(self.rng.uniform(1000, 30000, n), 2),
            "production_cost": np.round(self.rng.uniform(500, 20000, n), 2),
        })
        return with_product_margins(df)


class StoreGenerator:
    """Generate the store dimension from the fixed store list"""

    def generate(self, n: int = 5) -> pl.DataFrame:
        """Generate the first n stores"""
        if not 0 < n <= len(STORES):
            raise ValueError(f"Store count must be between 1 and {len(STORES)}")

        stores = STORES[:n]
        df = pl.DataFrame({
            "id_store": list(range(1, n + 1)),
            "store_name": [s[0] for s in stores],
            "city": [s[1] for s in stores],
            "surface_m2": [s[2] for s in stores],
        })
        return df.select([pl.col(c).cast(t) for c, t in STORE_SCHEMA.items()])


class SaleGenerator:
    """Generate sales referencing existing dimension keys"""

    def __init__(
        self,
        rng: np.random.Generator,
        clients: pl.DataFrame,
        products: pl.DataFrame,
        time: pl.DataFrame,
        stores: pl.DataFrame,
    ):
        self.rng = rng
        self.client_ids = clients["id_client"].to_numpy()
        self.product_ids = products["id_product"].to_numpy()
        self.date_ids = time["id_date"].to_numpy()
        self.store_ids = stores["id_store"].to_numpy()

    def generate(self, n: int = 2000) -> pl.DataFrame:
        """Generate n sales"""
        df = pl.DataFrame({
            "id_sale": np.arange(1, n + 1),
            "id_client": self.rng.choice(self.client_ids, n),
            "id_product": self.rng.choice(self.product_ids, n),
            "id_date": self.rng.choice(self.date_ids, n),
            "id_store": self.rng.choice(self.store_ids, n),
            "quantity": self.rng.choice(np.arange(1, 6), n, p=QUANTITY_WEIGHTS),
            "discount_percent": self.rng.choice(DISCOUNT_LEVELS, n, p=DISCOUNT_WEIGHTS),
        })
        return df.select([pl.col(c).cast(t) for c, t in SALE_SCHEMA.items()])


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """Main data generator orchestrator"""

    def __init__(
        self,
        config: Optional[GeneratorSettings] = None,
        rng: Optional[np.random.Generator] = None,
        output_dir: Optional[str] = None,
    ):
        self.config = config or get_settings().generator
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.output_dir = Path(output_dir) if output_dir else None

    def generate_all(self, save: bool = False) -> StarSchema:
        """Generate the complete star schema"""
        config = self.config
        logger.info(
            "Generating synthetic star schema",
            seed=config.seed,
            clients=config.n_clients,
            products=config.n_products,
            stores=config.n_stores,
            transactions=config.n_transactions,
        )

        clients = ClientGenerator(self.rng).generate(config.n_clients)
        products = ProductGenerator(self.rng).generate(config.n_products)
        stores = StoreGenerator().generate(config.n_stores)
        time = build_time_dimension(config.start_date, config.end_date)
        sales = SaleGenerator(self.rng, clients, products, time, stores).generate(
            config.n_transactions
        )

        schema = StarSchema(
            clients=clients,
            products=products,
            stores=stores,
            time=time,
            sales=sales,
        )

        if save:
            self._save_data(schema)

        logger.info("Data generation complete", **schema.row_counts())
        return schema

    def _save_data(self, schema: StarSchema) -> None:
        """Save generated tables as Parquet and CSV"""
        if self.output_dir is None:
            raise ValueError("No output directory configured for generated data")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        tables: Dict[str, pl.DataFrame] = {
            "dim_clients": schema.clients,
            "dim_products": schema.products,
            "dim_stores": schema.stores,
            "dim_time": schema.time,
            "fact_sales": schema.sales,
        }
        for name, df in tables.items():
            df.write_parquet(self.output_dir / f"{name}.parquet")
            df.write_csv(self.output_dir / f"{name}.csv")
            logger.info(f"Saved {name}", rows=len(df), path=str(self.output_dir))
