"""Sparse matrix operators and direct inverses."""

import numpy as np
from typing import List, Optional, Tuple
from scipy.sparse import csr_matrix, issparse
from scipy.sparse.linalg import splu
import logging

from .base import BaseOperator, LevelOperator
from ..exceptions import HierarchyMismatchError
from ..utils.performance import MemoryUsage

logger = logging.getLogger(__name__)


def _matrix_nbytes(matrix) -> int:
    return matrix.data.nbytes + matrix.indices.nbytes + matrix.indptr.nbytes


class SparseInverse(BaseOperator):
    """
    Sparse direct inverse based on a SuperLU factorization.

    With a free dof mask only the free block is factorized; constrained
    entries of the result are zero.
    """

    def __init__(self, matrix: csr_matrix, free_dofs: Optional[np.ndarray] = None):
        """
        Factorize a matrix.

        Args:
            matrix: Square sparse matrix
            free_dofs: Optional boolean mask of free dofs
        """
        super().__init__("SparseInverse")
        self.size = matrix.shape[0]

        if free_dofs is None:
            self.free_index = None
            block = matrix
        else:
            free_dofs = np.asarray(free_dofs, dtype=bool)
            if free_dofs.shape != (self.size,):
                raise HierarchyMismatchError(
                    f"Free dof mask of shape {free_dofs.shape} does not match matrix of size {self.size}"
                )
            self.free_index = np.flatnonzero(free_dofs)
            block = matrix[self.free_index][:, self.free_index]

        self.factor_size = block.shape[0]
        if self.factor_size > 0:
            self.lu = splu(block.tocsc())
        else:
            self.lu = None

        logger.debug(f"Factorized {self.factor_size}x{self.factor_size} block "
                     f"of {self.size}x{self.size} matrix")

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.size, self.size)

    def mult(self, x: np.ndarray) -> np.ndarray:
        """Solve ``A y = x`` on the factorized block."""
        x = np.asarray(x)
        if x.shape[0] != self.size:
            raise HierarchyMismatchError(
                f"Vector of length {x.shape[0]} applied to inverse of size {self.size}"
            )

        if self.free_index is None:
            if self.lu is None:
                return np.zeros(self.size, dtype=x.dtype)
            return self.lu.solve(x)

        y = np.zeros(self.size, dtype=np.result_type(x.dtype, np.float64))
        if self.lu is not None:
            y[self.free_index] = self.lu.solve(x[self.free_index])
        return y

    def memory_usage(self) -> List[MemoryUsage]:
        """Memory held by the L and U factors."""
        if self.lu is None:
            return []
        nbytes = _matrix_nbytes(self.lu.L) + _matrix_nbytes(self.lu.U)
        return [MemoryUsage("SparseInverse", nbytes, blocks=2)]


class SparseOperator(LevelOperator):
    """Level operator backed by a scipy sparse matrix."""

    def __init__(self, matrix, name: str = "SparseOperator"):
        """
        Initialize sparse operator.

        Args:
            matrix: Square matrix (sparse or dense array-like)
            name: Human-readable name
        """
        super().__init__(name)
        matrix = csr_matrix(matrix) if not issparse(matrix) else matrix.tocsr()

        if matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Level operator must be square, got shape {matrix.shape}")

        self.matrix = matrix

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def mult(self, x: np.ndarray) -> np.ndarray:
        return self.matrix @ x

    def diagonal(self) -> np.ndarray:
        """Main diagonal of the matrix."""
        return self.matrix.diagonal()

    def invert(self) -> SparseInverse:
        """Sparse direct inverse of the full matrix."""
        return SparseInverse(self.matrix)

    def invert_restricted(self, free_dofs: np.ndarray) -> SparseInverse:
        """Sparse direct inverse of the free block."""
        return SparseInverse(self.matrix, free_dofs)

    def memory_usage(self) -> List[MemoryUsage]:
        return [MemoryUsage(self.name, _matrix_nbytes(self.matrix))]
