"""
Client Segmentation with K-Means

Lloyd's algorithm over standardized client features:
- Multiple random restarts, keeping the lowest-inertia solution
- Nearest-centroid assignment with ties going to the lowest cluster index
- Empty clusters keep their previous centroid and report size 0

Randomness comes only from the ``numpy.random.Generator`` handed to the
clusterer, so the same data and seed always give the same partition.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import polars as pl
from scipy.spatial.distance import cdist
import structlog

from retail_dw.config import get_settings
from retail_dw.exceptions import InsufficientDataError
from .features import (
    CLUSTERING_FEATURES,
    StandardizedFeatures,
    feature_matrix,
    standardize,
)

logger = structlog.get_logger(__name__)


@dataclass
class KMeansResult:
    """Outcome of the best k-means restart"""
    labels: np.ndarray
    centroids: np.ndarray
    sizes: np.ndarray
    inertia: float
    n_iter: int
    converged: bool
    inertia_history: List[float] = field(default_factory=list)

    @property
    def n_clusters(self) -> int:
        return len(self.centroids)


@dataclass
class ClientSegmentation:
    """Cluster assignment of every client"""
    assignments: pl.DataFrame  # id_client, cluster
    centroids: pl.DataFrame  # cluster + one column per standardized feature
    result: KMeansResult
    standardized: StandardizedFeatures

    def scatter_points(self, x: str = "total_purchases", y: str = "nb_transactions") -> pl.DataFrame:
        """Standardized coordinates of every client on two features"""
        columns = [CLUSTERING_FEATURES.index(x), CLUSTERING_FEATURES.index(y)]
        points = self.standardized.values[:, columns]
        return self.assignments.with_columns(
            pl.Series(x, points[:, 0]),
            pl.Series(y, points[:, 1]),
        )


class KMeansClusterer:
    """
    K-means clustering (Lloyd's algorithm) with random restarts.

    Example:
        clusterer = KMeansClusterer(n_clusters=3, rng=np.random.default_rng(2024))
        result = clusterer.fit(standardized.values)
    """

    def __init__(
        self,
        n_clusters: int = 3,
        n_init: int = 25,
        max_iter: int = 100,
        rng: Optional[np.random.Generator] = None,
    ):
        if n_clusters < 1 or n_init < 1 or max_iter < 1:
            raise ValueError("n_clusters, n_init and max_iter must be positive")

        self.n_clusters = n_clusters
        self.n_init = n_init
        self.max_iter = max_iter
        self.rng = rng if rng is not None else np.random.default_rng()

    @staticmethod
    def _assign(points: np.ndarray, centroids: np.ndarray):
        """Nearest centroid per point and the resulting inertia"""
        distances = cdist(points, centroids, metric="sqeuclidean")
        labels = distances.argmin(axis=1)
        inertia = float(distances[np.arange(len(points)), labels].sum())
        return labels, inertia

    def _update(
        self,
        points: np.ndarray,
        labels: np.ndarray,
        centroids: np.ndarray,
    ) -> np.ndarray:
        """Mean of each cluster's points; empty clusters keep their centroid"""
        updated = centroids.copy()
        for cluster in range(self.n_clusters):
            members = points[labels == cluster]
            if len(members) > 0:
                updated[cluster] = members.mean(axis=0)
        return updated

    def _run(self, points: np.ndarray, initial: np.ndarray) -> KMeansResult:
        """Run Lloyd iterations from one set of initial centroids"""
        centroids = initial.copy()
        labels, inertia = self._assign(points, centroids)
        history = [inertia]
        converged = False
        n_iter = 0

        while n_iter < self.max_iter:
            n_iter += 1
            centroids = self._update(points, labels, centroids)
            new_labels, inertia = self._assign(points, centroids)
            history.append(inertia)

            if np.array_equal(new_labels, labels):
                converged = True
                break
            labels = new_labels

        return KMeansResult(
            labels=labels,
            centroids=centroids,
            sizes=np.bincount(labels, minlength=self.n_clusters),
            inertia=inertia,
            n_iter=n_iter,
            converged=converged,
            inertia_history=history,
        )

    def fit(self, points: np.ndarray) -> KMeansResult:
        """
        Cluster the rows of ``points``.

        Raises:
            InsufficientDataError: fewer rows than clusters
        """
        points = np.asarray(points, dtype=float)
        n_points = len(points)

        if n_points < self.n_clusters:
            raise InsufficientDataError(
                f"Need at least {self.n_clusters} records to form {self.n_clusters} clusters, got {n_points}",
                stage="clustering",
                details={"n_points": n_points, "n_clusters": self.n_clusters},
            )

        best: Optional[KMeansResult] = None
        for restart in range(self.n_init):
            seeds = self.rng.choice(n_points, size=self.n_clusters, replace=False)
            result = self._run(points, points[seeds])

            if not result.converged:
                logger.warning(
                    "K-means restart hit the iteration cap",
                    restart=restart,
                    max_iter=self.max_iter,
                )

            if best is None or result.inertia < best.inertia:
                best = result

        empty = int((best.sizes == 0).sum())
        if empty:
            logger.warning("K-means produced empty clusters", empty_clusters=empty)

        logger.info(
            "K-means complete",
            n_clusters=self.n_clusters,
            restarts=self.n_init,
            inertia=round(best.inertia, 4),
            iterations=best.n_iter,
            sizes=best.sizes.tolist(),
        )
        return best


def segment_clients(
    profile: pl.DataFrame,
    n_clusters: Optional[int] = None,
    n_init: Optional[int] = None,
    max_iter: Optional[int] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> ClientSegmentation:
    """
    Standardize client profiles and partition them with k-means.

    Arguments left as None come from the clustering configuration. An
    explicit ``rng`` takes precedence over ``seed``.
    """
    config = get_settings().clustering
    n_clusters = config.n_clusters if n_clusters is None else n_clusters
    n_init = config.n_init if n_init is None else n_init
    max_iter = config.max_iter if max_iter is None else max_iter
    if rng is None:
        rng = np.random.default_rng(config.seed if seed is None else seed)

    if profile.height < n_clusters:
        raise InsufficientDataError(
            f"Need at least {n_clusters} distinct clients, got {profile.height}",
            stage="clustering",
            details={"n_clients": profile.height, "n_clusters": n_clusters},
        )

    standardized = standardize(feature_matrix(profile))
    clusterer = KMeansClusterer(
        n_clusters=n_clusters,
        n_init=n_init,
        max_iter=max_iter,
        rng=rng,
    )
    result = clusterer.fit(standardized.values)

    assignments = pl.DataFrame({
        "id_client": profile["id_client"],
        "cluster": pl.Series(result.labels, dtype=pl.Int64),
    })

    centroids = pl.DataFrame(
        result.centroids,
        schema=list(CLUSTERING_FEATURES),
        orient="row",
    ).with_columns(
        pl.Series("cluster", np.arange(n_clusters), dtype=pl.Int64),
        pl.Series("size", result.sizes, dtype=pl.Int64),
    ).select(["cluster", "size", *CLUSTERING_FEATURES])

    return ClientSegmentation(
        assignments=assignments,
        centroids=centroids,
        result=result,
        standardized=standardized,
    )


def describe_clusters(
    profile: pl.DataFrame,
    assignments: pl.DataFrame,
    n_clusters: int = 3,
) -> pl.DataFrame:
    """
    Characteristics of each cluster in original units.

    Every cluster index appears, empty ones with n_clients = 0 and null
    averages.
    """
    stats = (
        profile.join(assignments, on="id_client", how="inner")
        .group_by("cluster")
        .agg([
            pl.len().cast(pl.Int64).alias("n_clients"),
            pl.col("age").mean().alias("avg_age"),
            pl.col("total_purchases").mean().alias("avg_purchases"),
            pl.col("nb_transactions").mean().alias("avg_transactions"),
        ])
    )

    clusters = pl.DataFrame({"cluster": pl.Series(range(n_clusters), dtype=pl.Int64)})
    return (
        clusters.join(stats, on="cluster", how="left")
        .with_columns(pl.col("n_clients").fill_null(0))
        .sort("cluster")
    )
