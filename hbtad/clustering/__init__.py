"""Distance metric and k-means clustering."""

from hbtad.clustering.distance import distance, euclidean, normalized_euclidean
from hbtad.clustering.kmeans import ClusterAssignment, KMeans, KMeansState, cluster

__all__ = [
    'distance',
    'euclidean',
    'normalized_euclidean',
    'ClusterAssignment',
    'KMeans',
    'KMeansState',
    'cluster',
]
