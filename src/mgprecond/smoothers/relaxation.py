"""Point relaxation smoothers for multigrid methods."""

import numpy as np
from typing import TYPE_CHECKING, List
from scipy.sparse import tril, triu
from scipy.sparse.linalg import spsolve_triangular
import logging

from .base import BaseSmoother, LevelData
from ..utils.performance import MemoryUsage

if TYPE_CHECKING:
    from ..core.hierarchy import DiscretizationHierarchy
    from ..operators.base import LevelOperatorProvider

logger = logging.getLogger(__name__)


class JacobiSmoother(BaseSmoother):
    """
    Damped Jacobi smoother.

    Updates: u <- u + omega * D^{-1} (f - A u)
    """

    def __init__(
        self,
        hierarchy: 'DiscretizationHierarchy',
        operators: 'LevelOperatorProvider',
        damping: float = 2.0 / 3.0
    ):
        """
        Initialize Jacobi smoother.

        Args:
            hierarchy: Discretization hierarchy
            operators: Level operators
            damping: Damping parameter omega (2/3 is standard for Laplacians)
        """
        super().__init__(hierarchy, operators, "Jacobi")
        self.damping = damping

        if not 0 < damping <= 1:
            logger.warning(f"Jacobi damping {damping} may not smooth")

    def _setup_level(self, level: int) -> LevelData:
        data = self._make_level_data(level)
        diagonal = data.operator.diagonal()

        inverse = np.zeros_like(diagonal, dtype=np.float64)
        nonzero = diagonal != 0
        inverse[nonzero] = 1.0 / diagonal[nonzero]
        if data.free_index is not None:
            mask = np.zeros(diagonal.shape[0], dtype=bool)
            mask[data.free_index] = True
            inverse[~mask] = 0.0

        data.extra["inverse_diagonal"] = inverse
        return data

    def _sweep(self, data: LevelData, u: np.ndarray, f: np.ndarray, backward: bool) -> None:
        r = data.operator.residual(u, f)
        u += self.damping * data.extra["inverse_diagonal"] * r

    def memory_usage(self) -> List[MemoryUsage]:
        nbytes = sum(data.extra["inverse_diagonal"].nbytes for data in self.levels.values())
        return [MemoryUsage("JacobiSmoother", nbytes, blocks=len(self.levels))]


class GaussSeidelSmoother(BaseSmoother):
    """
    Symmetric Gauss-Seidel smoother.

    Pre-smoothing sweeps forward with ``(D + L)``, post-smoothing sweeps
    backward with ``(D + U)``, so a multigrid cycle built on it is a
    symmetric preconditioner. Sweeps act on the free block only.
    """

    def __init__(self, hierarchy: 'DiscretizationHierarchy', operators: 'LevelOperatorProvider'):
        """
        Initialize Gauss-Seidel smoother.

        Args:
            hierarchy: Discretization hierarchy
            operators: Level operators
        """
        super().__init__(hierarchy, operators, "Gauss-Seidel")

    def _setup_level(self, level: int) -> LevelData:
        data = self._make_level_data(level)
        matrix = data.operator.matrix

        if data.free_index is not None:
            matrix = matrix[data.free_index][:, data.free_index]

        data.extra["lower"] = tril(matrix, format="csr")
        data.extra["upper"] = triu(matrix, format="csr")
        return data

    def _sweep(self, data: LevelData, u: np.ndarray, f: np.ndarray, backward: bool) -> None:
        r = data.operator.residual(u, f)
        if data.free_index is not None:
            r = r[data.free_index]

        if r.shape[0] == 0:
            return

        if backward:
            correction = spsolve_triangular(data.extra["upper"], r, lower=False)
        else:
            correction = spsolve_triangular(data.extra["lower"], r, lower=True)

        if data.free_index is None:
            u += correction
        else:
            u[data.free_index] += correction

    def memory_usage(self) -> List[MemoryUsage]:
        nbytes = 0
        for data in self.levels.values():
            for key in ("lower", "upper"):
                m = data.extra[key]
                nbytes += m.data.nbytes + m.indices.nbytes + m.indptr.nbytes
        return [MemoryUsage("GaussSeidelSmoother", nbytes, blocks=2 * len(self.levels))]
