"""Multigrid as preconditioner implementation."""

import numpy as np
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union
import logging

from .base import BasePreconditioner
from .coarse import CoarseSolverCache, CoarseType
from ..core.ownership import Borrowed, Held, hold
from ..core.vectors import prefix_view
from ..exceptions import (
    CollaboratorError, ConfigurationError, HierarchyMismatchError,
    MissingCollaboratorError, MultigridError
)
from ..solvers.krylov import ConjugateGradientSolver
from ..utils.performance import MemoryUsage, PerformanceProfiler, Timer

if TYPE_CHECKING:
    from ..config.settings import PreconditionerConfig
    from ..core.hierarchy import DiscretizationHierarchy
    from ..operators.base import LevelOperatorProvider
    from ..operators.transfer import BaseProlongation
    from ..smoothers.base import BaseSmoother

logger = logging.getLogger(__name__)

APPLY_TIMER = "MultigridPreconditioner.apply"


def _check_count(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return int(value)


def _release(holder: Optional[Held]) -> None:
    if holder is not None:
        holder.release()


class MultigridPreconditioner(BasePreconditioner):
    """
    Recursive multigrid preconditioner on a nested hierarchy.

    One application runs one multigrid cycle from the finest level with a
    zero initial guess. On each level the error is pre-smoothed, the
    residual restricted to the coarser level, the coarse problem solved
    recursively ``cycle`` times (V-cycle for 1, W-cycle for 2), the
    correction prolongated and added, and the result post-smoothed. On
    level 0 the configured coarse strategy resolves the system.

    The coarse solver is cached and rebuilt only by :meth:`update`;
    :meth:`apply` reads configuration and cache but never modifies them,
    so concurrent applications are safe once ``update`` has finished.
    """

    def __init__(
        self,
        hierarchy: 'DiscretizationHierarchy',
        operators: 'LevelOperatorProvider',
        smoother: Union['BaseSmoother', Held, None],
        prolongation: Union['BaseProlongation', Held, None],
        smoothing_steps: int = 1,
        cycle: int = 1,
        smoothing_step_increase: int = 1,
        coarse_type: Union[CoarseType, str] = CoarseType.EXACT,
        coarse_smoothing_steps: int = 1,
        update_all: Optional[bool] = None,
        update_always: bool = False,
        coarse_tolerance: float = 1e-10,
        coarse_max_iterations: int = 1000,
        profiler: Optional[PerformanceProfiler] = None
    ):
        """
        Initialize multigrid preconditioner.

        A smoother passed bare is owned and released by :meth:`close`; wrap
        it in ``Borrowed`` to keep its lifetime external. The prolongation is
        usually shared with the discretization and is borrowed unless passed
        as ``Owned(...)``.

        Args:
            hierarchy: Nested discretization hierarchy
            operators: Level operator provider
            smoother: Smoother used on every level
            prolongation: Transfer operator between consecutive levels
            smoothing_steps: Sweeps per pre-/post-smoothing on the finest level
            cycle: Recursive coarse solves per level (0 = smoothing only,
                1 = V-cycle, 2 = W-cycle)
            smoothing_step_increase: Factor applied to the smoothing steps on
                each coarser level
            coarse_type: Coarse-grid strategy
            coarse_smoothing_steps: Defect-correction passes (exact/user) or
                sweeps (smoothing) on level 0
            update_all: Rebuild the coarse solver and every smoother level on
                each update; defaults to the operators' ``use_galerkin``
            update_always: Force full smoother refresh on each update
            coarse_tolerance: Relative tolerance of the iterative coarse solve
            coarse_max_iterations: Iteration limit of the iterative coarse solve
            profiler: Profiler recording application timings
        """
        super().__init__("MultigridPreconditioner")

        self.hierarchy = hierarchy
        self.operators = operators
        self._smoother = hold(smoother)
        self._prolongation = hold(prolongation, owned=False)
        self._user_coarse: Optional[Held] = None
        self._coarse = CoarseSolverCache()

        self.set_smoothing_steps(smoothing_steps)
        self.set_cycle(cycle)
        self.set_increase_smoothing_steps(smoothing_step_increase)
        self.set_coarse_type(coarse_type)
        self.set_coarse_smoothing_steps(coarse_smoothing_steps)
        self.set_update_all(operators.use_galerkin if update_all is None else update_all)
        self.set_update_always(update_always)

        if coarse_tolerance <= 0:
            raise ConfigurationError("Coarse tolerance must be positive")
        self.coarse_tolerance = coarse_tolerance
        self.coarse_max_iterations = _check_count("coarse_max_iterations", coarse_max_iterations, 1)

        self.profiler = profiler if profiler is not None else PerformanceProfiler()

        logger.debug(f"Initialized {self.name}: cycle={self._cycle}, "
                     f"smoothing_steps={self._smoothing_steps}, coarse={self._coarse_type.value}")

    @classmethod
    def from_config(
        cls,
        config: 'PreconditionerConfig',
        hierarchy: 'DiscretizationHierarchy',
        operators: 'LevelOperatorProvider',
        prolongation: Union['BaseProlongation', Held, None]
    ) -> 'MultigridPreconditioner':
        """
        Build smoother and preconditioner from a configuration.

        The returned preconditioner has already been updated.

        Args:
            config: Complete preconditioner configuration
            hierarchy: Nested discretization hierarchy
            operators: Level operator provider
            prolongation: Transfer operator

        Returns:
            Ready-to-apply preconditioner
        """
        from ..smoothers import create_smoother

        config.validate()
        smoother_options = {}
        if config.smoother.type == "jacobi":
            smoother_options["damping"] = config.smoother.damping

        smoother = create_smoother(config.smoother.type, hierarchy, operators, **smoother_options)
        cycle = config.cycle

        preconditioner = cls(
            hierarchy,
            operators,
            smoother,
            prolongation,
            smoothing_steps=cycle.smoothing_steps,
            cycle=cycle.cycle,
            smoothing_step_increase=cycle.smoothing_step_increase,
            coarse_type=cycle.coarse_type,
            coarse_smoothing_steps=cycle.coarse_smoothing_steps,
            update_all=cycle.update_all,
            update_always=cycle.update_always,
            coarse_tolerance=config.coarse_solver.tolerance,
            coarse_max_iterations=config.coarse_solver.max_iterations,
        )
        preconditioner.update()
        return preconditioner

    # Configuration

    def set_smoothing_steps(self, steps: int) -> None:
        """Set the number of pre- and post-smoothing sweeps."""
        self._smoothing_steps = _check_count("smoothing_steps", steps, 1)

    def set_cycle(self, cycle: int) -> None:
        """Set the number of recursive coarse solves per level."""
        self._cycle = _check_count("cycle", cycle, 0)

    def set_increase_smoothing_steps(self, factor: int) -> None:
        """Set the per-level growth factor of the smoothing steps."""
        self._smoothing_step_increase = _check_count("smoothing_step_increase", factor, 1)

    def set_coarse_type(self, coarse_type: Union[CoarseType, str]) -> None:
        """Select the coarse-grid strategy."""
        self._coarse_type = CoarseType.coerce(coarse_type)

    def set_coarse_smoothing_steps(self, steps: int) -> None:
        """Set the number of coarse defect-correction passes or sweeps."""
        self._coarse_smoothing_steps = _check_count("coarse_smoothing_steps", steps, 1)

    def set_update_all(self, update_all: bool) -> None:
        """Rebuild everything (coarse solver, all smoother levels) on each update."""
        self._update_all = bool(update_all)

    def set_update_always(self, update_always: bool) -> None:
        """Force a full smoother refresh on each update."""
        self._update_always = bool(update_always)

    def set_coarse_grid_preconditioner(self, coarse: Union[Any, Held]) -> None:
        """
        Install a user coarse-grid solver and switch to the ``USER`` strategy.

        Args:
            coarse: Object supporting ``coarse @ f`` on level-0 vectors. Bare
                objects are owned; wrap in ``Borrowed`` to keep them external.
        """
        if coarse is None:
            raise MissingCollaboratorError("Coarse grid preconditioner must not be None")

        if self._user_coarse is not None:
            _release(self._user_coarse)

        self._user_coarse = hold(coarse)
        self._coarse_type = CoarseType.USER
        self._coarse.store(self._user_coarse.target, CoarseType.USER)

    @property
    def smoothing_steps(self) -> int:
        return self._smoothing_steps

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def smoothing_step_increase(self) -> int:
        return self._smoothing_step_increase

    @property
    def coarse_type(self) -> CoarseType:
        return self._coarse_type

    @property
    def coarse_smoothing_steps(self) -> int:
        return self._coarse_smoothing_steps

    @property
    def update_all(self) -> bool:
        return self._update_all

    @property
    def update_always(self) -> bool:
        return self._update_always

    @property
    def smoother(self) -> Optional['BaseSmoother']:
        return self._smoother.target if self._smoother is not None else None

    @property
    def prolongation(self) -> Optional['BaseProlongation']:
        return self._prolongation.target if self._prolongation is not None else None

    @property
    def coarse_solver(self) -> Any:
        """Cached level-0 solver, or None before the first update."""
        return self._coarse.solver if self._coarse.valid else None

    @property
    def num_levels(self) -> int:
        return self.hierarchy.num_levels

    @property
    def shape(self) -> Tuple[int, int]:
        n = self.hierarchy.num_dofs(self.hierarchy.num_levels - 1)
        return (n, n)

    # Lifecycle

    def update(self) -> None:
        """
        Refresh collaborators and, when required, rebuild the coarse solver.

        The smoother and prolongation are refreshed unconditionally. The
        coarse solver is rebuilt if the hierarchy has a single level,
        ``update_all`` is set, or no coarse solver was built yet.
        """
        try:
            if self._smoother is not None:
                self._smoother.target.update(force_full=self._update_always or self._update_all)
            if self._prolongation is not None:
                self._prolongation.target.update()

            rebuild = (
                self.hierarchy.num_levels == 1
                or self._update_all
                or not self._coarse.valid
            )
            if rebuild:
                self._build_coarse_solver()
        except MultigridError as e:
            raise e.append("in MultigridPreconditioner.update")
        except Exception as e:
            raise CollaboratorError.wrap(e, "in MultigridPreconditioner.update") from e

        logger.info(f"Updated {self.name}: {self.hierarchy.num_levels} levels, "
                    f"coarse={self._coarse_type.value}, coarse builds={self._coarse.builds}")

    def _build_coarse_solver(self) -> None:
        if self._coarse_type is CoarseType.EXACT:
            operator = self.operators.get_operator(0)
            free_dofs = self.hierarchy.free_dofs_on_level(0)

            if free_dofs is None:
                inverse = operator.invert()
            else:
                inverse = operator.invert_restricted(free_dofs)

            self._coarse.store(inverse, CoarseType.EXACT)
            logger.info(f"Factorized coarse operator with {self.hierarchy.num_dofs(0)} dofs")

        elif self._coarse_type is CoarseType.USER and self._user_coarse is not None:
            self._coarse.store(self._user_coarse.target, CoarseType.USER)

    def close(self) -> None:
        """Release owned collaborators and drop the coarse solver."""
        _release(self._smoother)
        _release(self._prolongation)
        _release(self._user_coarse)
        self._smoother = None
        self._prolongation = None
        self._user_coarse = None
        self._coarse.invalidate()
        logger.debug(f"Closed {self.name}")

    def __enter__(self) -> 'MultigridPreconditioner':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Application

    def apply(self, f: np.ndarray) -> np.ndarray:
        """
        Apply one multigrid cycle to ``f`` with zero initial guess.

        Args:
            f: Right-hand side on the finest level (not modified)

        Returns:
            Approximation of ``A^{-1} f``

        Only successful applications are recorded in the profiler.
        """
        timer = Timer(APPLY_TIMER).start()
        try:
            f = np.asarray(f)
            n = self.shape[0]
            if f.shape != (n,):
                raise HierarchyMismatchError(
                    f"Right-hand side of shape {f.shape} does not match finest level with {n} dofs"
                )

            y = np.zeros(n, dtype=np.result_type(f.dtype, np.float64))
            self.mgm(self.hierarchy.num_levels - 1, y, f)
        except MultigridError as e:
            logger.debug(f"{self.name} application failed: {e.message}")
            raise e.append("in MultigridPreconditioner.apply")
        except Exception as e:
            logger.debug(f"{self.name} application failed in collaborator: {e}")
            raise CollaboratorError.wrap(e, "caught in MultigridPreconditioner.apply") from e

        self.profiler.record(APPLY_TIMER, timer.stop())
        return y

    def mgm(self, level: int, u: np.ndarray, f: np.ndarray, incsm: int = 1) -> None:
        """
        Recursive multigrid cycle on ``level``.

        Args:
            level: Current level (0 = coarsest)
            u: Approximation, updated in place (zero on first entry)
            f: Right-hand side of ``level``
            incsm: Multiplier of the configured smoothing steps
        """
        try:
            if level <= 0:
                self._coarse_solve(u, f)
            else:
                self._cycle_level(level, u, f, incsm)
        except MultigridError as e:
            raise e.append(f"in mgm at level {level}")
        except Exception as e:
            raise CollaboratorError.wrap(e, f"in mgm at level {level}") from e

    def _cycle_level(self, level: int, u: np.ndarray, f: np.ndarray, incsm: int) -> None:
        smoother = self._require_smoother()
        steps = self._smoothing_steps * incsm

        if self._cycle == 0:
            smoother.pre_smooth(level, u, f, steps)
            smoother.post_smooth(level, u, f, steps)
            return

        prolongation = self._require_prolongation()
        ncoarse = self.hierarchy.num_dofs(level - 1)

        d = smoother.pre_smooth_residual(level, u, f, steps)
        prolongation.restrict_in_place(level, d)

        w = smoother.create_vector(level)
        w.fill(0.0)
        dt = prefix_view(d, ncoarse)
        wt = prefix_view(w, ncoarse)

        for _ in range(self._cycle):
            self.mgm(level - 1, wt, dt, incsm * self._smoothing_step_increase)

        prolongation.prolongate_in_place(level, w)
        u += w

        smoother.post_smooth(level, u, f, steps)

    def _coarse_solve(self, u: np.ndarray, f: np.ndarray) -> None:
        coarse_type = self._coarse_type

        if coarse_type is CoarseType.EXACT or coarse_type is CoarseType.USER:
            coarse = self._coarse.get()
            u[:] = coarse @ f

            if self._coarse_smoothing_steps > 1:
                smoother = self._require_smoother()
                for _ in range(1, self._coarse_smoothing_steps):
                    d = smoother.residual(0, u, f)
                    u += coarse @ d

        elif coarse_type is CoarseType.ITERATIVE:
            solver = ConjugateGradientSolver(
                max_iterations=self.coarse_max_iterations,
                tolerance=self.coarse_tolerance
            )
            solution, _ = solver.solve(
                self.operators.get_operator(0),
                f,
                free_dofs=self.hierarchy.free_dofs_on_level(0)
            )
            u[:] = solution

        elif coarse_type is CoarseType.SMOOTHING_ONLY:
            smoother = self._require_smoother()
            smoother.pre_smooth(0, u, f, self._coarse_smoothing_steps)
            smoother.post_smooth(0, u, f, self._coarse_smoothing_steps)

        else:
            raise ConfigurationError(f"Unknown coarse type {coarse_type!r}")

    def _require_smoother(self) -> 'BaseSmoother':
        if self._smoother is None:
            raise MissingCollaboratorError(f"{self.name} has no smoother")
        return self._smoother.target

    def _require_prolongation(self) -> 'BaseProlongation':
        if self._prolongation is None:
            raise MissingCollaboratorError(f"{self.name} has no prolongation")
        return self._prolongation.target

    # Diagnostics

    def memory_usage(self) -> List[MemoryUsage]:
        """Memory held by the coarse solver and the smoother."""
        usage = self._coarse.memory_usage()
        if self._smoother is not None:
            usage.extend(self._smoother.target.memory_usage())
        return usage

    def statistics(self) -> Dict[str, Any]:
        """Configuration and usage statistics."""
        return {
            "num_levels": self.hierarchy.num_levels,
            "ndofs": [self.hierarchy.num_dofs(level) for level in range(self.hierarchy.num_levels)],
            "cycle": self._cycle,
            "smoothing_steps": self._smoothing_steps,
            "smoothing_step_increase": self._smoothing_step_increase,
            "coarse_type": self._coarse_type.value,
            "coarse_smoothing_steps": self._coarse_smoothing_steps,
            "coarse_builds": self._coarse.builds,
            "applications": self.profiler.call_count(APPLY_TIMER),
            "timings": self.profiler.get_timing_summary(),
        }


class TwoLevelPreconditioner(BasePreconditioner):
    """
    Two-level preconditioner with an external coarse-grid preconditioner.

    Applies one unrolled multigrid level: pre-smoothing with residual,
    coarse correction on the leading dofs, post-smoothing.
    """

    def __init__(
        self,
        matrix,
        coarse_preconditioner,
        smoother: Union['BaseSmoother', Held],
        level: int,
        smoothing_steps: int = 1
    ):
        """
        Initialize two-level preconditioner and refresh its smoother.

        Args:
            matrix: Fine-level operator (defines the vector size)
            coarse_preconditioner: Externally managed operator applied to the
                leading coarse dofs via ``@``
            smoother: Smoother acting on ``level``; owned unless ``Borrowed``
            level: Hierarchy level the smoother works on
            smoothing_steps: Pre- and post-smoothing sweeps
        """
        super().__init__("TwoLevelPreconditioner")

        if coarse_preconditioner is None:
            raise MissingCollaboratorError("Two-level preconditioner needs a coarse preconditioner")

        self.matrix = matrix
        self._coarse = Borrowed(coarse_preconditioner)
        self._smoother = hold(smoother)
        self.level = level
        self.smoothing_steps = _check_count("smoothing_steps", smoothing_steps, 1)

        self.update()

    @property
    def shape(self) -> Tuple[int, int]:
        return tuple(self.matrix.shape)

    @property
    def coarse_size(self) -> int:
        return self._coarse.target.shape[0]

    @property
    def smoother(self) -> Optional['BaseSmoother']:
        return self._smoother.target if self._smoother is not None else None

    def set_smoothing_steps(self, steps: int) -> None:
        """Set the number of pre- and post-smoothing sweeps."""
        self.smoothing_steps = _check_count("smoothing_steps", steps, 1)

    def update(self) -> None:
        """Refresh the smoother; the coarse preconditioner is managed externally."""
        try:
            if self._smoother is not None:
                self._smoother.target.update()
        except MultigridError as e:
            raise e.append("in TwoLevelPreconditioner.update")
        except Exception as e:
            raise CollaboratorError.wrap(e, "in TwoLevelPreconditioner.update") from e

        logger.debug(f"Updated {self.name} smoother on level {self.level}")

    def apply(self, f: np.ndarray) -> np.ndarray:
        """
        Apply smoothing, coarse correction and smoothing.

        Args:
            f: Fine-level right-hand side (not modified)

        Returns:
            Preconditioned vector
        """
        try:
            if self._smoother is None:
                raise MissingCollaboratorError(f"{self.name} has no smoother")
            smoother = self._smoother.target

            f = np.asarray(f)
            u = np.zeros(self.shape[0], dtype=np.result_type(f.dtype, np.float64))

            res = smoother.pre_smooth_residual(self.level, u, f, self.smoothing_steps)

            ncoarse = self.coarse_size
            correction = self._coarse.target @ prefix_view(res, ncoarse)
            prefix_view(u, ncoarse)[:] += correction

            smoother.post_smooth(self.level, u, f, self.smoothing_steps)
        except MultigridError as e:
            raise e.append("in TwoLevelPreconditioner.apply")
        except Exception as e:
            raise CollaboratorError.wrap(e, "caught in TwoLevelPreconditioner.apply") from e

        return u

    def memory_usage(self) -> List[MemoryUsage]:
        """Memory held by the coarse preconditioner and the smoother."""
        usage: List[MemoryUsage] = []
        report = getattr(self._coarse.target, "memory_usage", None)
        if report is not None:
            usage.extend(report())
        if self._smoother is not None:
            usage.extend(self._smoother.target.memory_usage())
        return usage

    def close(self) -> None:
        """Release the smoother if owned."""
        _release(self._smoother)
        self._smoother = None

    def __enter__(self) -> 'TwoLevelPreconditioner':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
