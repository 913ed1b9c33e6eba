"""Krylov subspace solvers."""

import time
import numpy as np
from typing import Any, Dict, Optional, Tuple
import logging

from .base import BaseSolver

logger = logging.getLogger(__name__)


class ConjugateGradientSolver(BaseSolver):
    """
    (Preconditioned) conjugate gradient method for symmetric positive
    definite systems.

    The preconditioner only needs to support ``preconditioner @ r``; a
    multigrid preconditioner, a sparse inverse or a scipy ``LinearOperator``
    all work.
    """

    def __init__(
        self,
        max_iterations: int = 1000,
        tolerance: float = 1e-8,
        preconditioner=None,
        verbose: bool = False
    ):
        """
        Initialize CG solver.

        Args:
            max_iterations: Maximum number of iterations
            tolerance: Relative residual reduction to reach
            preconditioner: Optional preconditioner (identity if None)
            verbose: Log progress at info level
        """
        name = "PCG" if preconditioner is not None else "CG"
        super().__init__(max_iterations, tolerance, verbose, name)
        self.preconditioner = preconditioner

    def _precondition(self, r: np.ndarray, mask: Optional[np.ndarray]) -> np.ndarray:
        if self.preconditioner is None:
            z = r.copy()
        else:
            z = np.asarray(self.preconditioner @ r, dtype=np.float64)
        if mask is not None:
            z[~mask] = 0.0
        return z

    def solve(
        self,
        operator,
        rhs: np.ndarray,
        initial_guess: Optional[np.ndarray] = None,
        free_dofs: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Solve ``A x = rhs``.

        Args:
            operator: Symmetric positive definite operator supporting ``@``
            rhs: Right-hand side
            initial_guess: Initial guess (zero if None)
            free_dofs: Optional mask; constrained entries of the initial
                guess are kept and their residual ignored

        Returns:
            Tuple of (solution, convergence_info)
        """
        self.reset()

        rhs = np.asarray(rhs, dtype=np.float64)
        x = np.zeros_like(rhs) if initial_guess is None else np.array(initial_guess, dtype=np.float64)
        mask = None if free_dofs is None else np.asarray(free_dofs, dtype=bool)

        r = rhs - operator @ x
        if mask is not None:
            r[~mask] = 0.0

        initial_norm = float(np.linalg.norm(r))
        self.history.record_iteration(initial_norm, 0.0)
        self.final_residual = initial_norm

        if initial_norm == 0.0:
            self.converged = True
            return x, self.get_convergence_info()

        z = self._precondition(r, mask)
        p = z.copy()
        rz = float(r @ z)

        for iteration in range(1, self.max_iterations + 1):
            iteration_start = time.time()

            ap = operator @ p
            if mask is not None:
                ap[~mask] = 0.0

            pap = float(p @ ap)
            if pap <= 0.0:
                logger.warning(f"{self.name} breakdown at iteration {iteration}: p^T A p = {pap:.2e}")
                break

            alpha = rz / pap
            x += alpha * p
            r -= alpha * ap

            residual_norm = float(np.linalg.norm(r))
            self.history.record_iteration(residual_norm, time.time() - iteration_start)
            self.log_iteration(iteration, residual_norm)
            self.iterations_performed = iteration
            self.final_residual = residual_norm

            if self.check_convergence(residual_norm / initial_norm, iteration):
                self.converged = True
                break

            z = self._precondition(r, mask)
            rz_new = float(r @ z)
            beta = rz_new / rz
            rz = rz_new
            p = z + beta * p

        return x, self.get_convergence_info()
