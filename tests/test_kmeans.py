"""Test k-means clustering."""

import warnings

import numpy as np
import pytest

from hbtad.clustering.distance import euclidean
from hbtad.clustering.kmeans import ClusterAssignment, KMeans, KMeansState, cluster
from hbtad.errors import DimensionMismatch, InsufficientSamples, NonConvergence


FOUR_POINTS = [[0, 0], [0, 1], [10, 10], [10, 11]]


def _partition(result):
    return sorted(sorted(members) for members in result.clusters())


def test_two_groups_converge():
    """Test four 2-D points split into {0,1} and {2,3} within 2 iterations."""
    result = cluster(FOUR_POINTS, k=2)

    assert _partition(result) == [[0, 1], [2, 3]]
    assert result.converged is True
    assert result.iterations <= 2
    assert len(result) == 4
    assert set(result.labels.tolist()) == {0, 1}


def test_two_groups_converge_with_euclidean_metric():
    result = cluster(FOUR_POINTS, k=2, metric=euclidean)
    assert _partition(result) == [[0, 1], [2, 3]]
    assert result.converged is True
    assert result.iterations <= 2


def test_first_k_seeding():
    """Test centroid i starts from vectors[i]: k == n gives identity labels."""
    vectors = [[5, 1], [2, 8], [9, 9]]
    result = cluster(vectors, k=3)
    assert result.labels.tolist() == [0, 1, 2]
    assert np.array_equal(result.centroids, np.array(vectors, dtype=float))


def test_ties_go_to_lowest_centroid():
    """Test equidistant vectors join the lowest-index cluster."""
    engine = KMeans(k=2, max_iterations=1, metric=lambda a, b: 0.0 if np.array_equal(a, b) else 1.0)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', NonConvergence)
        result = engine.fit([[0.0], [1.0], [2.0], [3.0]])
    assert result.labels[0] == 0
    assert result.labels[2] == 0
    assert result.labels[3] == 0


def test_centroids_are_means():
    result = cluster([[0, 0], [0, 2], [10, 10], [12, 10]], k=2, metric=euclidean)
    centroids = sorted(map(tuple, result.centroids.tolist()))
    assert centroids == [(0.0, 1.0), (11.0, 10.0)]


def test_empty_cluster_keeps_centroid():
    """Test a cluster that loses all members keeps its previous centroid."""
    # Identical vectors tie everywhere and all go to cluster 0
    vectors = [[2.0, 2.0]] * 3
    result = cluster(vectors, k=2, metric=euclidean)

    assert result.members(1) == []
    assert result.sizes() == [3, 0]
    assert result.converged is True
    assert result.centroids[1].tolist() == [2.0, 2.0]
    assert np.all(np.isfinite(result.centroids))


def test_insufficient_samples():
    engine = KMeans(k=3)
    with pytest.raises(InsufficientSamples) as exc_info:
        engine.fit([[0, 0], [1, 1]])
    assert exc_info.value.samples == 2
    assert exc_info.value.k == 3
    assert engine.state is KMeansState.INITIALIZED


def test_dimension_mismatch_propagates():
    with pytest.raises(DimensionMismatch):
        cluster([[0, 0], [1, 1], [1, 2, 3]], k=2)


def test_invalid_parameters():
    with pytest.raises(ValueError):
        KMeans(k=0)
    with pytest.raises(ValueError):
        KMeans(k=2, max_iterations=0)


def test_non_convergence_warns_and_returns_last_assignment():
    engine = KMeans(k=2, max_iterations=1)
    with pytest.warns(NonConvergence):
        result = engine.fit(FOUR_POINTS)

    assert result.converged is False
    assert result.iterations == 1
    assert engine.state is KMeansState.EXHAUSTED
    assert len(result.labels) == 4
    assert all(0 <= label < 2 for label in result.labels)


def test_state_after_convergence():
    engine = KMeans(k=2)
    engine.fit(FOUR_POINTS)
    assert engine.state is KMeansState.CONVERGED


def test_every_vector_assigned():
    rng = np.random.default_rng(7)
    vectors = rng.integers(0, 5, size=(40, 6))
    result = cluster(vectors, k=4)
    assert len(result.labels) == 40
    assert all(0 <= label < 4 for label in result.labels)
    assert sum(result.sizes()) == 40


def test_deterministic():
    rng = np.random.default_rng(3)
    vectors = rng.normal(size=(25, 3))
    first = cluster(vectors, k=3, metric=euclidean)
    second = cluster(vectors, k=3, metric=euclidean)
    assert np.array_equal(first.labels, second.labels)


def test_assignment_helpers():
    result = ClusterAssignment(labels=np.array([1, 0, 1]), centroids=np.zeros((2, 1)))
    assert result.k == 2
    assert result[0] == 1
    assert result.as_dict() == {0: 1, 1: 0, 2: 1}
    assert result.members(1) == [0, 2]
    assert result.clusters() == [[1], [0, 2]]
