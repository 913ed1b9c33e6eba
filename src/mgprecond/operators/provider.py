"""Per-level operator storage and Galerkin coarsening."""

from typing import TYPE_CHECKING, List, Sequence
from scipy.sparse import csr_matrix
import logging

from .base import LevelOperatorProvider
from .sparse import SparseOperator

if TYPE_CHECKING:
    from .transfer import BaseProlongation

logger = logging.getLogger(__name__)


class LevelOperators(LevelOperatorProvider):
    """
    Operator provider holding one sparse matrix per level.

    Operators are either assembled independently per level, or obtained by
    Galerkin projection ``A_{l-1} = P_l^T A_l P_l`` of the finest matrix. In
    the Galerkin case every coarse operator changes whenever the fine one is
    reassembled, which is reported through ``use_galerkin``.
    """

    def __init__(self, matrices: Sequence = (), use_galerkin: bool = False):
        """
        Initialize provider.

        Args:
            matrices: Level matrices, coarsest first
            use_galerkin: Whether coarse operators are Galerkin projections
        """
        self.operators: List[SparseOperator] = []
        self.use_galerkin = use_galerkin

        for matrix in matrices:
            self.add_level(matrix)

    @classmethod
    def galerkin(cls, fine_matrix, prolongation: 'BaseProlongation') -> 'LevelOperators':
        """
        Build all levels from the finest matrix by Galerkin projection.

        Args:
            fine_matrix: Matrix of the finest level
            prolongation: Prolongation providing ``matrix(level)``

        Returns:
            Provider with ``use_galerkin`` set
        """
        provider = cls(use_galerkin=True)
        provider.reassemble_galerkin(fine_matrix, prolongation)
        return provider

    @property
    def num_levels(self) -> int:
        return len(self.operators)

    def add_level(self, matrix) -> int:
        """
        Append the operator of a new finest level.

        Args:
            matrix: Square level matrix

        Returns:
            Index of the new level
        """
        level = len(self.operators)
        self.operators.append(SparseOperator(matrix, name=f"A[{level}]"))
        logger.debug(f"Added operator for level {level}: shape {self.operators[-1].shape}")
        return level

    def set_operator(self, level: int, matrix) -> None:
        """Replace the operator of an existing level (reassembly)."""
        self.operators[level] = SparseOperator(matrix, name=f"A[{level}]")

    def reassemble_galerkin(self, fine_matrix, prolongation: 'BaseProlongation') -> None:
        """
        Recompute every coarse operator from a new finest matrix.

        Args:
            fine_matrix: Matrix of the finest level
            prolongation: Prolongation of the hierarchy
        """
        num_levels = prolongation.hierarchy.num_levels
        matrices = [csr_matrix(fine_matrix)]

        for level in range(num_levels - 1, 0, -1):
            p = prolongation.matrix(level)
            matrices.append((p.T @ matrices[-1] @ p).tocsr())

        self.operators = [
            SparseOperator(matrix, name=f"A[{level}]")
            for level, matrix in enumerate(reversed(matrices))
        ]
        logger.debug(f"Galerkin hierarchy with {num_levels} levels assembled")

    def get_operator(self, level: int) -> SparseOperator:
        """Operator of ``level``."""
        if not 0 <= level < len(self.operators):
            raise IndexError(f"No operator for level {level} ({len(self.operators)} levels)")
        return self.operators[level]

    def matrix(self, level: int) -> csr_matrix:
        """Sparse matrix of ``level``."""
        return self.get_operator(level).matrix
