"""
K-means clustering over feature vectors.

Seeding is first-k: centroid i starts at vectors[i]. This is deterministic,
so repeated runs over the same capture give the same labels, at the cost of
being sensitive to input order.

The engine moves through

    INITIALIZED -> ASSIGNING -> RECOMPUTING -> (CONVERGED | ASSIGNING)

and stops in EXHAUSTED instead of CONVERGED when the iteration bound is hit.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

import numpy as np

from hbtad.clustering.distance import as_vector, normalized_euclidean
from hbtad.errors import InsufficientSamples, NonConvergence
from hbtad.utils.logging import get_logger


DEFAULT_MAX_ITERATIONS = 100

Metric = Callable[[np.ndarray, np.ndarray], float]


class KMeansState(Enum):
    """Engine states."""
    INITIALIZED = "initialized"
    ASSIGNING = "assigning"
    RECOMPUTING = "recomputing"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass
class ClusterAssignment:
    """
    Result of one clustering run.

    Attributes:
        labels: Cluster id in [0, k) for each input vector, by input index
        centroids: Final centroid per cluster (k x dims)
        iterations: Number of recompute steps performed
        converged: False if the iteration bound stopped the run
    """
    labels: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.int64))
    centroids: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    iterations: int = 0
    converged: bool = True

    @property
    def k(self) -> int:
        return len(self.centroids)

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, index: int) -> int:
        return int(self.labels[index])

    def as_dict(self) -> dict[int, int]:
        """Map vector index -> cluster id."""
        return {i: int(label) for i, label in enumerate(self.labels)}

    def members(self, cluster_id: int) -> list[int]:
        """Indices of the vectors assigned to ``cluster_id``."""
        return [int(i) for i in np.flatnonzero(self.labels == cluster_id)]

    def clusters(self) -> list[list[int]]:
        """Member indices for every cluster id in [0, k)."""
        return [self.members(c) for c in range(self.k)]

    def sizes(self) -> list[int]:
        return [len(m) for m in self.clusters()]


class KMeans:
    """
    K-means engine with first-k seeding.

    Examples:
        >>> engine = KMeans(k=2)
        >>> result = engine.fit([[0, 0], [0, 1], [10, 10], [10, 11]])
        >>> result.clusters()
        [[2, 3], [0, 1]]

    Args:
        k: Number of clusters
        max_iterations: Upper bound on recompute steps (default: 100)
        metric: Distance function (default: normalized_euclidean)
    """

    def __init__(
        self,
        k: int,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        metric: Metric | None = None,
    ):
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self.k = k
        self.max_iterations = max_iterations
        self.metric = metric or normalized_euclidean
        self.state = KMeansState.INITIALIZED
        self._logger = get_logger(__name__)

    def fit(self, vectors: Sequence[Sequence[float]] | np.ndarray) -> ClusterAssignment:
        """
        Partition ``vectors`` into k clusters.

        Raises:
            InsufficientSamples: If there are fewer vectors than clusters
            DimensionMismatch: If vectors differ in length
        """
        if len(vectors) < self.k:
            raise InsufficientSamples(len(vectors), self.k)

        data = [as_vector(v) for v in vectors]
        self.state = KMeansState.INITIALIZED
        centroids = [data[i].copy() for i in range(self.k)]

        labels: np.ndarray | None = None
        iterations = 0
        while True:
            self.state = KMeansState.ASSIGNING
            new_labels = self._assign(data, centroids)

            if labels is not None and np.array_equal(labels, new_labels):
                self.state = KMeansState.CONVERGED
                break
            labels = new_labels

            if iterations >= self.max_iterations:
                self.state = KMeansState.EXHAUSTED
                break

            self.state = KMeansState.RECOMPUTING
            centroids = self._recompute(data, labels, centroids)
            iterations += 1

        converged = self.state is KMeansState.CONVERGED
        if not converged:
            warnings.warn(
                f"k-means did not converge within {self.max_iterations} iterations; "
                "returning the last assignment",
                NonConvergence,
                stacklevel=2,
            )
        self._logger.debug("kmeans_finished", k=self.k, samples=len(data),
                           iterations=iterations, converged=converged)

        return ClusterAssignment(
            labels=labels,
            centroids=np.vstack(centroids),
            iterations=iterations,
            converged=converged,
        )

    def _assign(self, data: list[np.ndarray], centroids: list[np.ndarray]) -> np.ndarray:
        labels = np.empty(len(data), dtype=np.int64)
        for i, vec in enumerate(data):
            best = 0
            best_dist = self.metric(vec, centroids[0])
            for c in range(1, len(centroids)):
                dist = self.metric(vec, centroids[c])
                # strict comparison keeps the lowest index on ties
                if dist < best_dist:
                    best, best_dist = c, dist
            labels[i] = best
        return labels

    def _recompute(
        self,
        data: list[np.ndarray],
        labels: np.ndarray,
        centroids: list[np.ndarray],
    ) -> list[np.ndarray]:
        updated = []
        for c, centroid in enumerate(centroids):
            members = [data[i] for i in np.flatnonzero(labels == c)]
            if members:
                updated.append(np.mean(np.vstack(members), axis=0))
            else:
                # empty cluster keeps its previous centroid
                updated.append(centroid)
        return updated


def cluster(
    vectors: Sequence[Sequence[float]] | np.ndarray,
    k: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    metric: Metric | None = None,
) -> ClusterAssignment:
    """Run k-means with first-k seeding. See KMeans."""
    return KMeans(k, max_iterations=max_iterations, metric=metric).fit(vectors)
