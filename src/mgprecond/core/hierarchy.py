"""Nested discretization hierarchy for multilevel methods."""

from abc import ABC, abstractmethod
import numpy as np
from typing import List, Optional, Sequence
import logging

from ..exceptions import HierarchyMismatchError

logger = logging.getLogger(__name__)


class DiscretizationHierarchy(ABC):
    """
    Abstract description of a sequence of nested discretization levels.

    Level 0 is the coarsest level and ``num_levels - 1`` the finest. The
    first ``num_dofs(level - 1)`` coordinates of a level vector correspond
    to the degrees of freedom of the next coarser level.
    """

    @property
    @abstractmethod
    def num_levels(self) -> int:
        """Number of levels currently in the hierarchy."""
        pass

    @abstractmethod
    def num_dofs(self, level: int) -> int:
        """
        Number of degrees of freedom on a level.

        Args:
            level: Level index (0 = coarsest)

        Returns:
            Dimension of the level vector space
        """
        pass

    @abstractmethod
    def free_dofs(self) -> Optional[np.ndarray]:
        """
        Boolean mask of unconstrained dofs on the finest level.

        Returns:
            Mask over the finest level, or None if every dof is free
        """
        pass

    def free_dofs_on_level(self, level: int) -> Optional[np.ndarray]:
        """
        Free dof mask truncated to a level (prefix property).

        Args:
            level: Level index

        Returns:
            Mask of length ``num_dofs(level)`` or None if every dof is free
        """
        mask = self.free_dofs()
        if mask is None:
            return None

        mask = mask[:self.num_dofs(level)]
        if mask.all():
            return None
        return mask

    def finest_level(self) -> int:
        """Index of the finest level."""
        return self.num_levels - 1


class NestedHierarchy(DiscretizationHierarchy):
    """
    Hierarchy described by its per-level dof counts.

    Levels are appended with :meth:`add_level` after each refinement; the
    nesting invariant is checked whenever the hierarchy changes so the
    multigrid cycle never needs to re-check it.
    """

    def __init__(self, ndofs: Sequence[int], free_dofs: Optional[np.ndarray] = None):
        """
        Initialize hierarchy.

        Args:
            ndofs: Dof counts, coarsest level first
            free_dofs: Optional boolean mask over the finest level
        """
        if len(ndofs) == 0:
            raise HierarchyMismatchError("Hierarchy must have at least one level")

        self._ndofs: List[int] = []
        for ndof in ndofs:
            self._append(int(ndof))

        self._free_dofs: Optional[np.ndarray] = None
        if free_dofs is not None:
            self.set_free_dofs(free_dofs)

        logger.debug(f"Created hierarchy with {self.num_levels} levels: ndofs={self._ndofs}")

    def _append(self, ndof: int) -> None:
        if ndof <= 0:
            raise HierarchyMismatchError(f"Level must have a positive number of dofs, got {ndof}")

        if self._ndofs and ndof < self._ndofs[-1]:
            raise HierarchyMismatchError(
                f"Level {len(self._ndofs)} has {ndof} dofs, fewer than the "
                f"{self._ndofs[-1]} dofs of the coarser level"
            )

        self._ndofs.append(ndof)

    @property
    def num_levels(self) -> int:
        """Number of levels."""
        return len(self._ndofs)

    @property
    def ndofs(self) -> List[int]:
        """Copy of the per-level dof counts."""
        return list(self._ndofs)

    def num_dofs(self, level: int) -> int:
        """Number of dofs on ``level``."""
        if not 0 <= level < self.num_levels:
            raise IndexError(f"Level {level} out of range for {self.num_levels}-level hierarchy")
        return self._ndofs[level]

    def free_dofs(self) -> Optional[np.ndarray]:
        """Free dof mask over the finest level, or None."""
        return self._free_dofs

    def set_free_dofs(self, mask: Optional[np.ndarray]) -> None:
        """
        Set the finest-level free dof mask.

        Args:
            mask: Boolean array of length ``num_dofs(finest)``, or None
        """
        if mask is None:
            self._free_dofs = None
            return

        mask = np.asarray(mask, dtype=bool)
        expected = self._ndofs[-1]
        if mask.shape != (expected,):
            raise HierarchyMismatchError(
                f"Free dof mask has shape {mask.shape}, expected ({expected},)"
            )

        self._free_dofs = mask.copy()

    def add_level(self, ndof: int, free_dofs: Optional[np.ndarray] = None) -> int:
        """
        Append a finer level.

        The previous free dof mask is extended with ``True`` unless a new
        mask is supplied.

        Args:
            ndof: Dof count of the new finest level
            free_dofs: Optional mask for the new finest level

        Returns:
            Index of the new level
        """
        self._append(int(ndof))

        if free_dofs is not None:
            self.set_free_dofs(free_dofs)
        elif self._free_dofs is not None:
            extended = np.ones(ndof, dtype=bool)
            extended[:len(self._free_dofs)] = self._free_dofs
            self._free_dofs = extended

        logger.info(f"Added level {self.num_levels - 1} with {ndof} dofs")
        return self.num_levels - 1

    def __repr__(self) -> str:
        return f"NestedHierarchy(ndofs={self._ndofs})"
