"""Feature vector construction."""

from hbtad.features.vectors import FeatureLayout, FeatureVectors, build_vectors

__all__ = [
    'FeatureLayout',
    'FeatureVectors',
    'build_vectors',
]
