"""Multilevel preconditioners."""

from .base import BasePreconditioner
from .coarse import CoarseSolverCache, CoarseType
from .multigrid_preconditioner import MultigridPreconditioner, TwoLevelPreconditioner

__all__ = [
    "BasePreconditioner",
    "CoarseSolverCache",
    "CoarseType",
    "MultigridPreconditioner",
    "TwoLevelPreconditioner",
]
