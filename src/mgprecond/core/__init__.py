"""Core abstractions for nested level hierarchies."""

from .hierarchy import DiscretizationHierarchy, NestedHierarchy
from .ownership import Borrowed, Owned, hold
from .vectors import prefix_view, zero_vector

__all__ = [
    "DiscretizationHierarchy",
    "NestedHierarchy",
    "Borrowed",
    "Owned",
    "hold",
    "prefix_view",
    "zero_vector",
]
