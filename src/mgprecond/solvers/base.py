"""Base classes for iterative solvers."""

from abc import ABC, abstractmethod
import numpy as np
from typing import Dict, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class ConvergenceHistory:
    """Track convergence history for solvers."""

    def __init__(self):
        """Initialize convergence history."""
        self.residual_norms = []
        self.iteration_times = []

    def record_iteration(self, residual_norm: float, iteration_time: float) -> None:
        """Record an iteration."""
        self.residual_norms.append(residual_norm)
        self.iteration_times.append(iteration_time)

    def get_convergence_rate(self) -> float:
        """Estimate the average residual reduction per iteration."""
        if len(self.residual_norms) < 2 or self.residual_norms[0] <= 0:
            return 0.0

        steps = len(self.residual_norms) - 1
        ratio = self.residual_norms[-1] / self.residual_norms[0]
        if ratio <= 0:
            return 0.0
        return float(ratio ** (1.0 / steps))

    def clear(self) -> None:
        """Clear convergence history."""
        self.residual_norms.clear()
        self.iteration_times.clear()


class BaseSolver(ABC):
    """Abstract base class for iterative solvers."""

    def __init__(
        self,
        max_iterations: int = 1000,
        tolerance: float = 1e-8,
        verbose: bool = False,
        name: str = "BaseSolver"
    ):
        """
        Initialize base solver.

        Args:
            max_iterations: Maximum number of iterations
            tolerance: Relative residual reduction to reach
            verbose: Log progress at info level
            name: Solver name for logging
        """
        if max_iterations <= 0:
            raise ValueError("Max iterations must be positive")
        if tolerance <= 0:
            raise ValueError("Tolerance must be positive")

        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.verbose = verbose
        self.name = name

        self.history = ConvergenceHistory()
        self.converged = False
        self.final_residual = float('inf')
        self.iterations_performed = 0

        logger.debug(f"Initialized {name}: max_iter={max_iterations}, tol={tolerance}")

    @abstractmethod
    def solve(
        self,
        operator,
        rhs: np.ndarray,
        initial_guess: Optional[np.ndarray] = None,
        free_dofs: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, Dict[str, Any]]:
        """
        Solve the linear system.

        Args:
            operator: Linear operator supporting ``operator @ x``
            rhs: Right-hand side vector
            initial_guess: Initial guess for solution
            free_dofs: Optional boolean mask; constrained entries stay fixed

        Returns:
            Tuple of (solution, convergence_info)
        """
        pass

    def check_convergence(self, relative_residual: float, iteration: int) -> bool:
        """
        Check convergence criteria.

        Args:
            relative_residual: Current residual norm relative to the initial one
            iteration: Current iteration number

        Returns:
            True if converged
        """
        converged = relative_residual < self.tolerance

        if converged:
            log = logger.info if self.verbose else logger.debug
            log(f"{self.name} converged in {iteration} iterations: "
                f"relative residual = {relative_residual:.2e}")
        elif iteration >= self.max_iterations:
            logger.warning(f"{self.name} reached max iterations ({self.max_iterations}): "
                           f"relative residual = {relative_residual:.2e}")

        return converged

    def log_iteration(self, iteration: int, residual_norm: float) -> None:
        """Log iteration information."""
        if self.verbose and iteration % max(1, self.max_iterations // 10) == 0:
            logger.info(f"{self.name} iteration {iteration}: residual = {residual_norm:.2e}")

    def get_convergence_info(self) -> Dict[str, Any]:
        """
        Get convergence information.

        Returns:
            Dictionary with convergence statistics
        """
        return {
            "converged": self.converged,
            "iterations": self.iterations_performed,
            "final_residual": self.final_residual,
            "convergence_rate": self.history.get_convergence_rate(),
            "residual_history": self.history.residual_norms.copy(),
            "total_time": sum(self.history.iteration_times),
        }

    def reset(self) -> None:
        """Reset solver state."""
        self.history.clear()
        self.converged = False
        self.final_residual = float('inf')
        self.iterations_performed = 0
