"""Grid transfer operators between nested levels."""

from abc import ABC, abstractmethod
import numpy as np
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence
from scipy.sparse import csr_matrix
import logging

from ..exceptions import HierarchyMismatchError, MissingCollaboratorError

if TYPE_CHECKING:
    from ..core.hierarchy import DiscretizationHierarchy

logger = logging.getLogger(__name__)


class BaseProlongation(ABC):
    """
    Prolongation between consecutive levels of a nested hierarchy.

    Coarse dofs form the prefix of the fine level vector, so both transfer
    directions work in place on a fine-level vector: restriction leaves the
    coarse data in the leading ``ndof(level - 1)`` entries, prolongation reads
    them from there.
    """

    def __init__(self, hierarchy: 'DiscretizationHierarchy', name: str = "Prolongation"):
        """
        Initialize prolongation.

        Args:
            hierarchy: Nested discretization hierarchy
            name: Human-readable name
        """
        self.hierarchy = hierarchy
        self.name = name
        self.released = False

    @abstractmethod
    def matrix(self, level: int) -> csr_matrix:
        """
        Prolongation matrix from ``level - 1`` to ``level``.

        Args:
            level: Fine level index (>= 1)

        Returns:
            Sparse matrix of shape ``(ndof(level), ndof(level - 1))``
        """
        pass

    def update(self) -> None:
        """Refresh internal state after the hierarchy changed."""
        pass

    def _check(self, level: int, vector: np.ndarray) -> int:
        if self.released:
            raise MissingCollaboratorError(f"{self.name} used after release")

        if level < 1:
            raise HierarchyMismatchError(f"No coarser level below level {level}")

        nfine = self.hierarchy.num_dofs(level)
        if vector.shape[0] != nfine:
            raise HierarchyMismatchError(
                f"Vector of length {vector.shape[0]} does not match level {level} with {nfine} dofs"
            )
        return self.hierarchy.num_dofs(level - 1)

    def restrict_in_place(self, level: int, vector: np.ndarray) -> None:
        """
        Restrict a level vector onto the coarser level, in place.

        After the call ``vector[:ndof(level - 1)]`` holds ``P^T vector`` and
        the remaining entries are zero.

        Args:
            level: Fine level index
            vector: Level vector, overwritten
        """
        ncoarse = self._check(level, vector)
        coarse = self.matrix(level).T @ vector
        vector[:ncoarse] = coarse
        vector[ncoarse:] = 0.0

    def prolongate_in_place(self, level: int, vector: np.ndarray) -> None:
        """
        Prolongate the coarse prefix of a level vector, in place.

        Args:
            level: Fine level index
            vector: Level vector whose leading ``ndof(level - 1)`` entries
                hold the coarse vector; overwritten with ``P coarse``
        """
        ncoarse = self._check(level, vector)
        vector[:] = self.matrix(level) @ vector[:ncoarse]

    def restrict(self, level: int, vector: np.ndarray) -> np.ndarray:
        """Out-of-place restriction returning the coarse vector."""
        work = np.array(vector, dtype=np.float64)
        self.restrict_in_place(level, work)
        return work[:self.hierarchy.num_dofs(level - 1)].copy()

    def prolongate(self, level: int, coarse: np.ndarray) -> np.ndarray:
        """Out-of-place prolongation of a coarse vector to ``level``."""
        work = np.zeros(self.hierarchy.num_dofs(level))
        work[:coarse.shape[0]] = coarse
        self.prolongate_in_place(level, work)
        return work

    def release(self) -> None:
        """Drop cached matrices; further use is an error."""
        self.released = True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class ParentProlongation(BaseProlongation):
    """
    Hierarchical linear prolongation defined by vertex parents.

    Coarse dofs keep their values; every new dof ``i >= ndof(level - 1)``
    interpolates the mean of its two parent dofs. Parents of a new dof may be
    earlier new dofs of the same level, which is resolved in index order.
    """

    def __init__(self, hierarchy: 'DiscretizationHierarchy',
                 parents: Optional[Sequence[np.ndarray]] = None):
        """
        Initialize parent-based prolongation.

        Args:
            hierarchy: Nested discretization hierarchy
            parents: One ``(ndof(l) - ndof(l - 1), 2)`` integer array per
                level ``l >= 1``
        """
        super().__init__(hierarchy, "ParentProlongation")
        self.parents: Dict[int, np.ndarray] = {}
        self.matrices: Dict[int, csr_matrix] = {}

        for offset, level_parents in enumerate(parents or []):
            self.add_level(level_parents, level=offset + 1)

    def add_level(self, parents: np.ndarray, level: Optional[int] = None) -> int:
        """
        Register the parents of the new dofs of a level.

        Args:
            parents: Integer array of shape ``(num_new_dofs, 2)``
            level: Level index, defaults to the level after the last
                registered one

        Returns:
            The level index the parents were registered for
        """
        if level is None:
            level = max(self.parents, default=0) + 1

        parents = np.asarray(parents, dtype=np.int64).reshape(-1, 2)
        self.parents[level] = parents
        self.matrices.pop(level, None)
        return level

    def update(self) -> None:
        """Build matrices for every level that has registered parents."""
        if self.released:
            raise MissingCollaboratorError(f"{self.name} used after release")

        built = 0
        for level in range(1, self.hierarchy.num_levels):
            if level not in self.matrices:
                self.matrices[level] = self._build_matrix(level)
                built += 1

        if built:
            logger.debug(f"Built {built} prolongation matrices")

    def _build_matrix(self, level: int) -> csr_matrix:
        if level not in self.parents:
            raise HierarchyMismatchError(f"No parents registered for level {level}")

        ncoarse = self.hierarchy.num_dofs(level - 1)
        nfine = self.hierarchy.num_dofs(level)
        parents = self.parents[level]

        if parents.shape[0] != nfine - ncoarse:
            raise HierarchyMismatchError(
                f"Level {level} adds {nfine - ncoarse} dofs but {parents.shape[0]} parent pairs were given"
            )

        rows: List[Dict[int, float]] = [{i: 1.0} for i in range(ncoarse)]
        for offset, (first, second) in enumerate(parents):
            dof = ncoarse + offset
            if not (0 <= first < dof and 0 <= second < dof):
                raise HierarchyMismatchError(
                    f"Parents ({first}, {second}) of dof {dof} on level {level} must precede it"
                )

            row: Dict[int, float] = {}
            for parent in (first, second):
                for col, weight in rows[parent].items():
                    row[col] = row.get(col, 0.0) + 0.5 * weight
            rows.append(row)

        indptr = np.zeros(nfine + 1, dtype=np.int64)
        indices = []
        data = []
        for i, row in enumerate(rows):
            cols = sorted(row)
            indices.extend(cols)
            data.extend(row[col] for col in cols)
            indptr[i + 1] = indptr[i] + len(cols)

        return csr_matrix(
            (np.asarray(data, dtype=np.float64), np.asarray(indices, dtype=np.int64), indptr),
            shape=(nfine, ncoarse)
        )

    def matrix(self, level: int) -> csr_matrix:
        """Prolongation matrix of ``level`` (built on first use)."""
        if self.released:
            raise MissingCollaboratorError(f"{self.name} used after release")

        if level not in self.matrices:
            self.matrices[level] = self._build_matrix(level)
        return self.matrices[level]

    def release(self) -> None:
        super().release()
        self.matrices.clear()


class MatrixProlongation(BaseProlongation):
    """Prolongation given by explicit per-level matrices."""

    def __init__(self, hierarchy: 'DiscretizationHierarchy', matrices: Sequence):
        """
        Initialize matrix prolongation.

        Args:
            hierarchy: Nested discretization hierarchy
            matrices: One ``ndof(l) x ndof(l - 1)`` matrix per level ``l >= 1``
        """
        super().__init__(hierarchy, "MatrixProlongation")
        self.matrices = {level + 1: csr_matrix(m) for level, m in enumerate(matrices)}
        self.update()

    def update(self) -> None:
        """Validate matrix shapes against the hierarchy."""
        for level, m in self.matrices.items():
            expected = (self.hierarchy.num_dofs(level), self.hierarchy.num_dofs(level - 1))
            if m.shape != expected:
                raise HierarchyMismatchError(
                    f"Prolongation matrix of level {level} has shape {m.shape}, expected {expected}"
                )

    def add_level(self, matrix) -> int:
        """Append the matrix of the next finer level."""
        level = max(self.matrices, default=0) + 1
        self.matrices[level] = csr_matrix(matrix)
        return level

    def matrix(self, level: int) -> csr_matrix:
        if self.released:
            raise MissingCollaboratorError(f"{self.name} used after release")
        if level not in self.matrices:
            raise HierarchyMismatchError(f"No prolongation matrix for level {level}")
        return self.matrices[level]
