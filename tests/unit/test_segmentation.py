"""
Unit Tests - Client Profile, Standardization and K-Means
"""
import numpy as np
import polars as pl
import pytest

from retail_dw.exceptions import DegenerateInputError, InsufficientDataError
from retail_dw.ml.clustering import KMeansClusterer, describe_clusters, segment_clients
from retail_dw.ml.features import (
    CLUSTERING_FEATURES,
    build_client_profile,
    feature_matrix,
    standardize,
)


class TestClientProfile:
    """Tests for the per-client feature profile"""

    def test_profile_values(self, sample_warehouse):
        profile = build_client_profile(sample_warehouse)

        assert profile["id_client"].to_list() == [1, 2, 3]
        assert profile["age"].to_list() == [30, 45, 60]
        assert profile["total_purchases"].to_list() == pytest.approx([1090.0, 850.0, 142.5])
        assert profile["nb_transactions"].to_list() == [2, 2, 1]
        assert profile["avg_basket"].to_list() == pytest.approx([545.0, 425.0, 142.5])

    def test_feature_matrix_shape(self, sample_warehouse):
        matrix = feature_matrix(build_client_profile(sample_warehouse))

        assert matrix.shape == (3, len(CLUSTERING_FEATURES))
        assert matrix.dtype == np.float64


class TestStandardize:
    """Tests for z-score standardization"""

    def test_zero_mean_unit_std(self, rng):
        values = rng.normal(50, 12, size=(40, 4))

        standardized = standardize(values)

        np.testing.assert_allclose(standardized.values.mean(axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(standardized.values.std(axis=0, ddof=1), 1.0, atol=1e-12)

    def test_zero_variance_maps_to_zero(self):
        values = np.array([[1.0, 5.0], [2.0, 5.0], [3.0, 5.0]])

        standardized = standardize(values)

        assert np.all(standardized.values[:, 1] == 0.0)
        assert standardized.zero_variance.tolist() == [False, True]
        assert not np.isnan(standardized.values).any()

    def test_repeating_decimal_constant_maps_to_zero(self):
        """Test a constant column of inexact floats is still zero variance"""
        values = np.array([[0.1, 1.0], [0.1, 2.0], [0.1, 3.0]])

        standardized = standardize(values)

        assert standardized.values[:, 0].tolist() == [0.0, 0.0, 0.0]
        assert standardized.stds[0] == 0.0
        assert standardized.values[:, 1].tolist() == pytest.approx([-1.0, 0.0, 1.0])

    def test_single_row(self):
        standardized = standardize(np.array([[3.0, 4.0]]))

        assert standardized.values.tolist() == [[0.0, 0.0]]

    def test_empty_population(self):
        with pytest.raises(DegenerateInputError):
            standardize(np.empty((0, 4)))


class TestKMeansClusterer:
    """Tests for Lloyd's algorithm with restarts"""

    def test_finds_separated_groups(self, separated_profile):
        """Test three well-separated groups of three become the three clusters"""
        segmentation = segment_clients(
            separated_profile, n_clusters=3, n_init=25, rng=np.random.default_rng(2024)
        )

        labels = segmentation.assignments["cluster"].to_list()
        groups = [set(labels[0:3]), set(labels[3:6]), set(labels[6:9])]
        assert all(len(g) == 1 for g in groups)
        assert len(set.union(*groups)) == 3
        assert segmentation.result.sizes.tolist() == [3, 3, 3]

    def test_every_client_assigned_once(self, separated_profile):
        segmentation = segment_clients(separated_profile, rng=np.random.default_rng(1))

        assignments = segmentation.assignments
        assert assignments.height == separated_profile.height
        assert assignments["id_client"].n_unique() == separated_profile.height
        assert set(assignments["cluster"].to_list()) <= {0, 1, 2}

    def test_same_seed_same_result(self, separated_profile):
        """Test the partition is reproducible for a fixed seed"""
        first = segment_clients(separated_profile, seed=2024)
        second = segment_clients(separated_profile, seed=2024)

        assert first.assignments.equals(second.assignments)
        assert first.centroids.equals(second.centroids)

    def test_inertia_non_increasing(self, rng):
        """Test inertia never grows across Lloyd iterations"""
        points = rng.normal(size=(60, 4))
        clusterer = KMeansClusterer(n_clusters=3, n_init=1, rng=rng)

        result = clusterer.fit(points)

        history = np.array(result.inertia_history)
        assert np.all(np.diff(history) <= 1e-9)
        assert result.inertia == pytest.approx(history[-1])

    def test_keeps_lowest_inertia_restart(self, rng):
        points = rng.normal(size=(50, 2))

        single = KMeansClusterer(n_clusters=3, n_init=1, rng=np.random.default_rng(5)).fit(points)
        many = KMeansClusterer(n_clusters=3, n_init=25, rng=np.random.default_rng(5)).fit(points)

        assert many.inertia <= single.inertia

    def test_ties_go_to_lowest_index(self):
        """Test a point equidistant from two centroids joins the lower index"""
        points = np.array([[0.0], [1.0], [2.0]])

        labels, _ = KMeansClusterer._assign(points, np.array([[0.0], [2.0]]))

        assert labels.tolist() == [0, 0, 1]

    def test_empty_cluster_keeps_centroid(self):
        clusterer = KMeansClusterer(n_clusters=2, n_init=1)
        points = np.array([[0.0, 0.0], [1.0, 1.0]])
        centroids = np.array([[0.5, 0.5], [10.0, 10.0]])

        updated = clusterer._update(points, np.array([0, 0]), centroids)

        assert updated.tolist() == [[0.5, 0.5], [10.0, 10.0]]

    def test_empty_cluster_reported_with_size_zero(self):
        """Test duplicate points can leave a cluster empty without failing"""
        points = np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]])

        result = KMeansClusterer(n_clusters=3, n_init=2, rng=np.random.default_rng(0)).fit(points)

        assert result.sizes.sum() == 3
        assert 0 in result.sizes.tolist()

    def test_too_few_points(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            KMeansClusterer(n_clusters=3).fit(np.zeros((2, 4)))

        assert exc_info.value.details == {"n_points": 2, "n_clusters": 3}

    def test_too_few_clients(self, sample_warehouse):
        profile = build_client_profile(sample_warehouse).head(2)

        with pytest.raises(InsufficientDataError):
            segment_clients(profile, n_clusters=3)

    def test_explicit_zero_clusters_rejected(self, separated_profile):
        with pytest.raises(ValueError):
            segment_clients(separated_profile, n_clusters=0)

    def test_scatter_points(self, separated_profile):
        segmentation = segment_clients(separated_profile, rng=np.random.default_rng(2024))

        points = segmentation.scatter_points()

        assert points.columns == ["id_client", "cluster", "total_purchases", "nb_transactions"]
        assert points["total_purchases"].to_list() == pytest.approx(
            segmentation.standardized.values[:, 1].tolist()
        )


class TestDescribeClusters:
    """Tests for cluster characteristics"""

    def test_describe_clusters(self, separated_profile):
        segmentation = segment_clients(separated_profile, rng=np.random.default_rng(2024))

        summary = describe_clusters(separated_profile, segmentation.assignments, n_clusters=3)

        assert summary["cluster"].to_list() == [0, 1, 2]
        assert summary["n_clients"].to_list() == [3, 3, 3]
        assert sorted(summary["avg_age"].to_list()) == pytest.approx([21.0, 46.0, 71.0])

    def test_empty_cluster_listed(self):
        profile = pl.DataFrame({
            "id_client": [1, 2],
            "age": [30, 40],
            "total_purchases": [100.0, 200.0],
            "nb_transactions": [1, 2],
        })
        assignments = pl.DataFrame({"id_client": [1, 2], "cluster": [0, 0]})

        summary = describe_clusters(profile, assignments, n_clusters=3)

        assert summary["n_clients"].to_list() == [2, 0, 0]
        assert summary["avg_age"].to_list()[1:] == [None, None]
