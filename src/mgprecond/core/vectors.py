"""Vector helpers for nested level spaces."""

import numpy as np

from ..exceptions import HierarchyMismatchError


def prefix_view(vector: np.ndarray, size: int) -> np.ndarray:
    """
    View over the leading ``size`` entries of a level vector.

    Writes through the view update ``vector``, which is what the in-place
    restriction and prolongation rely on.

    Args:
        vector: One-dimensional level vector
        size: Length of the coarse prefix

    Returns:
        Slice view ``vector[:size]``
    """
    if size > vector.shape[0]:
        raise HierarchyMismatchError(
            f"Coarse range of {size} dofs exceeds vector of length {vector.shape[0]}"
        )
    return vector[:size]


def zero_vector(size: int, dtype=np.float64) -> np.ndarray:
    """Fresh zero vector of the given length."""
    return np.zeros(size, dtype=dtype)
