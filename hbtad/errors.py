"""
Exception and warning types raised by hbtad.

Per-frame problems (malformed headers, oversized packets) are never raised;
they are recorded as FrameEvent objects by the aggregator. Only the
clustering stage surfaces errors to its caller.
"""

from __future__ import annotations


class HbtadError(Exception):
    """Base class for all hbtad errors."""


class DimensionMismatch(HbtadError, ValueError):
    """Two feature vectors have different (or zero) lengths."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Feature vector dimensions differ or are empty: {left} != {right}")


class InsufficientSamples(HbtadError, ValueError):
    """Fewer feature vectors than requested clusters."""

    def __init__(self, samples: int, k: int):
        self.samples = samples
        self.k = k
        super().__init__(f"Cannot form {k} clusters from {samples} vectors")


class NonConvergence(HbtadError, RuntimeWarning):
    """K-means hit its iteration bound before memberships stabilized."""
