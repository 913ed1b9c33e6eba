"""Base class for level smoothers used inside multigrid cycles."""

from abc import ABC, abstractmethod
import numpy as np
from typing import TYPE_CHECKING, Any, Dict, List, Optional
import logging

from ..core.vectors import zero_vector
from ..exceptions import MissingCollaboratorError

if TYPE_CHECKING:
    from ..core.hierarchy import DiscretizationHierarchy
    from ..operators.base import LevelOperatorProvider
    from ..utils.performance import MemoryUsage

logger = logging.getLogger(__name__)


class LevelData:
    """Per-level data a smoother caches between updates."""

    def __init__(self, operator, free_index: Optional[np.ndarray]):
        """
        Args:
            operator: Level operator
            free_index: Indices of free dofs, or None if all are free
        """
        self.operator = operator
        self.free_index = free_index
        self.extra: Dict[str, Any] = {}


class BaseSmoother(ABC):
    """
    Abstract smoother acting on every level of a hierarchy.

    Smoothing modifies ``u`` in place, which lets the multigrid cycle pass
    views over the coarse prefix of a finer vector. Constrained dofs are
    never modified and carry a zero residual.
    """

    def __init__(
        self,
        hierarchy: 'DiscretizationHierarchy',
        operators: 'LevelOperatorProvider',
        name: str = "BaseSmoother"
    ):
        """
        Initialize smoother.

        Args:
            hierarchy: Discretization hierarchy
            operators: Provider of the level operators
            name: Smoother name for logging
        """
        self.hierarchy = hierarchy
        self.operators = operators
        self.name = name
        self.update_all = False
        self.released = False
        self.levels: Dict[int, LevelData] = {}

    def set_update_all(self, update_all: bool) -> None:
        """Rebuild every level (not only new ones) on each update."""
        self.update_all = bool(update_all)

    def update(self, force_full: bool = False) -> None:
        """
        Refresh cached level data after the hierarchy or operators changed.

        Args:
            force_full: Rebuild all levels instead of only new ones
        """
        if self.released:
            raise MissingCollaboratorError(f"{self.name} smoother used after release")

        num_levels = self.hierarchy.num_levels
        rebuild_all = force_full or self.update_all

        for level in list(self.levels):
            if level >= num_levels:
                del self.levels[level]

        rebuilt = []
        for level in range(num_levels):
            if rebuild_all or level not in self.levels:
                self.levels[level] = self._setup_level(level)
                rebuilt.append(level)

        logger.debug(f"{self.name} smoother updated levels {rebuilt}")

    def _make_level_data(self, level: int) -> LevelData:
        operator = self.operators.get_operator(level)
        mask = self.hierarchy.free_dofs_on_level(level)
        free_index = None if mask is None else np.flatnonzero(mask)
        return LevelData(operator, free_index)

    @abstractmethod
    def _setup_level(self, level: int) -> LevelData:
        """Compute the cached data of one level."""
        pass

    @abstractmethod
    def _sweep(self, data: LevelData, u: np.ndarray, f: np.ndarray, backward: bool) -> None:
        """Apply one relaxation sweep to ``u`` in place."""
        pass

    def _level(self, level: int) -> LevelData:
        if self.released:
            raise MissingCollaboratorError(f"{self.name} smoother used after release")
        try:
            return self.levels[level]
        except KeyError:
            raise MissingCollaboratorError(
                f"{self.name} smoother has no data for level {level}; call update() first"
            ) from None

    def create_vector(self, level: int) -> np.ndarray:
        """Zero vector of the level dimension."""
        return zero_vector(self.hierarchy.num_dofs(level))

    def residual(self, level: int, u: np.ndarray, f: np.ndarray) -> np.ndarray:
        """
        Residual ``f - A u`` with zeros on constrained dofs.

        Args:
            level: Level index
            u: Current approximation
            f: Right-hand side

        Returns:
            New residual vector
        """
        data = self._level(level)
        d = data.operator.residual(u, f)
        if data.free_index is not None:
            masked = np.zeros_like(d)
            masked[data.free_index] = d[data.free_index]
            d = masked
        return d

    def pre_smooth(self, level: int, u: np.ndarray, f: np.ndarray, steps: int) -> None:
        """Apply ``steps`` forward sweeps to ``u`` in place."""
        data = self._level(level)
        for _ in range(steps):
            self._sweep(data, u, f, backward=False)

    def post_smooth(self, level: int, u: np.ndarray, f: np.ndarray, steps: int) -> None:
        """Apply ``steps`` backward sweeps to ``u`` in place."""
        data = self._level(level)
        for _ in range(steps):
            self._sweep(data, u, f, backward=True)

    def pre_smooth_residual(self, level: int, u: np.ndarray, f: np.ndarray, steps: int) -> np.ndarray:
        """
        Pre-smooth and return the residual of the smoothed iterate.

        Args:
            level: Level index
            u: Approximation, smoothed in place
            f: Right-hand side
            steps: Number of sweeps

        Returns:
            Residual after smoothing
        """
        self.pre_smooth(level, u, f, steps)
        return self.residual(level, u, f)

    def memory_usage(self) -> List['MemoryUsage']:
        """Memory held by cached level data."""
        return []

    def release(self) -> None:
        """Drop all cached data; the smoother cannot be used afterwards."""
        self.levels.clear()
        self.released = True
        logger.debug(f"{self.name} smoother released")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', levels={sorted(self.levels)})"
