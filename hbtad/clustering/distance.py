"""
Variance-normalized Euclidean distance between feature vectors.

For each dimension the two scalars a[i], b[i] are treated as a two-sample
population; the contribution is (a[i] - b[i])^2 divided by that population's
variance. Dimensions where both values are equal have zero variance and
contribute nothing, so the result is always finite.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from hbtad.errors import DimensionMismatch


def as_vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Coerce a sequence into a 1-D float64 array."""
    return np.asarray(values, dtype=np.float64).reshape(-1)


def pairwise_std(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Element-wise population standard deviation of the pairs {a[i], b[i]}."""
    # mean is (a+b)/2, so each sample sits |a-b|/2 away from it
    return np.abs(a - b) / 2.0


def normalized_euclidean(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    Distance between two equal-length, non-empty vectors.

    Raises:
        DimensionMismatch: If the lengths differ or either vector is empty
    """
    a = as_vector(a)
    b = as_vector(b)
    if len(a) != len(b) or len(a) == 0:
        raise DimensionMismatch(len(a), len(b))

    std = pairwise_std(a, b)
    spread = std > 0
    scaled = (a[spread] - b[spread]) / std[spread]
    return float(np.sqrt(np.sum(scaled * scaled)))


def distance(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Alias for normalized_euclidean."""
    return normalized_euclidean(a, b)


def euclidean(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Plain Euclidean distance, for callers that want an unnormalized metric."""
    a = as_vector(a)
    b = as_vector(b)
    if len(a) != len(b) or len(a) == 0:
        raise DimensionMismatch(len(a), len(b))
    return float(np.linalg.norm(a - b))
