"""
Data Generation Module
"""
from .generators import (
    ClientGenerator,
    DataGenerator,
    ProductGenerator,
    SaleGenerator,
    StoreGenerator,
)

__all__ = [
    "ClientGenerator",
    "DataGenerator",
    "ProductGenerator",
    "SaleGenerator",
    "StoreGenerator",
]
