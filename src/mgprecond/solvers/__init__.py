"""Iterative solvers used around and inside the preconditioner."""

from .base import BaseSolver, ConvergenceHistory
from .krylov import ConjugateGradientSolver

__all__ = [
    "BaseSolver",
    "ConvergenceHistory",
    "ConjugateGradientSolver",
]
