"""
Client Segmentation Module
"""
from .features import (
    CLUSTERING_FEATURES,
    StandardizedFeatures,
    build_client_profile,
    feature_matrix,
    standardize,
)
from .clustering import (
    ClientSegmentation,
    KMeansClusterer,
    KMeansResult,
    describe_clusters,
    segment_clients,
)

__all__ = [
    "CLUSTERING_FEATURES",
    "StandardizedFeatures",
    "build_client_profile",
    "feature_matrix",
    "standardize",
    "ClientSegmentation",
    "KMeansClusterer",
    "KMeansResult",
    "describe_clusters",
    "segment_clients",
]
