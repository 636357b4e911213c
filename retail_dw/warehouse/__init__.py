"""
Star Schema and Warehouse Consolidation Module
"""
from .schema import StarSchema, build_time_dimension, with_product_margins
from .metrics import SaleMetrics, add_derived_metrics, compute_sale_metrics
from .joins import MissingReferencePolicy, build_warehouse

__all__ = [
    "StarSchema",
    "build_time_dimension",
    "with_product_margins",
    "SaleMetrics",
    "add_derived_metrics",
    "compute_sale_metrics",
    "MissingReferencePolicy",
    "build_warehouse",
]
