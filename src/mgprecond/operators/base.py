"""Base classes for level operators and operator providers."""

from abc import ABC, abstractmethod
import numpy as np
from typing import TYPE_CHECKING, List, Tuple

if TYPE_CHECKING:
    from ..utils.performance import MemoryUsage


class BaseOperator(ABC):
    """Abstract base class for linear operators acting on level vectors."""

    def __init__(self, name: str = "BaseOperator"):
        """
        Initialize base operator.

        Args:
            name: Human-readable name for the operator
        """
        self.name = name

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, int]:
        """Operator shape (rows, columns)."""
        pass

    @abstractmethod
    def mult(self, x: np.ndarray) -> np.ndarray:
        """
        Apply the operator to a vector.

        Args:
            x: Input vector

        Returns:
            New vector holding the product
        """
        pass

    def __matmul__(self, x: np.ndarray) -> np.ndarray:
        return self.mult(x)

    def memory_usage(self) -> List['MemoryUsage']:
        """Memory held by the operator."""
        return []

    def __str__(self) -> str:
        """String representation of the operator."""
        return self.name

    def __repr__(self) -> str:
        """Detailed representation of the operator."""
        return f"{self.__class__.__name__}(name='{self.name}', shape={self.shape})"


class LevelOperator(BaseOperator):
    """Operator of one hierarchy level, invertible at the coarsest level."""

    @abstractmethod
    def invert(self) -> BaseOperator:
        """Exact inverse of the full operator."""
        pass

    @abstractmethod
    def invert_restricted(self, free_dofs: np.ndarray) -> BaseOperator:
        """
        Exact inverse of the operator restricted to the free dofs.

        Constrained entries of the result are zero.

        Args:
            free_dofs: Boolean mask of free dofs

        Returns:
            Inverse operator of the full dimension
        """
        pass

    def residual(self, u: np.ndarray, f: np.ndarray) -> np.ndarray:
        """Compute ``f - A u``."""
        return f - self.mult(u)


class LevelOperatorProvider(ABC):
    """Supplies one operator per hierarchy level."""

    use_galerkin = False

    @property
    @abstractmethod
    def num_levels(self) -> int:
        """Number of levels with an operator."""
        pass

    @abstractmethod
    def get_operator(self, level: int) -> LevelOperator:
        """
        Operator of a level.

        Args:
            level: Level index (0 = coarsest)

        Returns:
            Level operator
        """
        pass
