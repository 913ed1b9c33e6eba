"""Base class for preconditioners."""

from abc import ABC, abstractmethod
import numpy as np
from typing import TYPE_CHECKING, List, Tuple
from scipy.sparse.linalg import LinearOperator
import logging

if TYPE_CHECKING:
    from ..utils.performance import MemoryUsage

logger = logging.getLogger(__name__)


class BasePreconditioner(ABC):
    """Abstract base class for preconditioners of level operators."""

    def __init__(self, name: str = "BasePreconditioner"):
        """
        Initialize base preconditioner.

        Args:
            name: Human-readable name for the preconditioner
        """
        self.name = name

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, int]:
        """Shape of the preconditioner as a linear map."""
        pass

    @abstractmethod
    def update(self) -> None:
        """Refresh the preconditioner after the underlying problem changed."""
        pass

    @abstractmethod
    def apply(self, f: np.ndarray) -> np.ndarray:
        """
        Apply the preconditioner: return an approximation of ``A^{-1} f``.

        Args:
            f: Input vector (not modified)

        Returns:
            New vector
        """
        pass

    def apply_transpose(self, f: np.ndarray) -> np.ndarray:
        """
        Apply the transpose of the preconditioner.

        Symmetric smoothers (forward pre-, backward post-smoothing) make the
        preconditioner symmetric, so the same application is used.
        """
        return self.apply(f)

    def memory_usage(self) -> List['MemoryUsage']:
        """Memory held by the preconditioner and its collaborators."""
        return []

    def __matmul__(self, f: np.ndarray) -> np.ndarray:
        return self.apply(f)

    def as_linear_operator(self) -> LinearOperator:
        """Wrap as a scipy ``LinearOperator`` (e.g. the ``M`` of ``scipy.sparse.linalg.cg``)."""
        return LinearOperator(
            self.shape,
            matvec=lambda x: self.apply(np.ravel(x)),
            rmatvec=lambda x: self.apply_transpose(np.ravel(x)),
            dtype=np.float64
        )

    def __str__(self) -> str:
        """String representation of the preconditioner."""
        return self.name

    def __repr__(self) -> str:
        """Detailed representation of the preconditioner."""
        return f"{self.__class__.__name__}(name='{self.name}')"
