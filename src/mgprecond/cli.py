"""Command line driver: multigrid-preconditioned CG on the 1D model problem."""

import argparse
import sys
from typing import List, Optional
import logging

from .applications.poisson import build_poisson_1d
from .config.settings import PreconditionerConfig
from .exceptions import MultigridError
from .preconditioning.multigrid_preconditioner import MultigridPreconditioner
from .solvers.krylov import ConjugateGradientSolver
from .utils.performance import total_memory

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser of ``mgprecond-solve``."""
    parser = argparse.ArgumentParser(
        description='Solve a 1D reaction-diffusion problem with multigrid-preconditioned CG'
    )
    parser.add_argument('--config', default=None,
                        help='YAML or JSON preconditioner configuration')
    parser.add_argument('--levels', type=int, default=5,
                        help='Number of hierarchy levels')
    parser.add_argument('--coarse-elements', type=int, default=4,
                        help='Elements of the coarsest mesh')
    parser.add_argument('--reaction', type=float, default=0.0,
                        help='Reaction coefficient')
    parser.add_argument('--galerkin', action='store_true',
                        help='Galerkin coarse operators')
    parser.add_argument('--cycle', type=int, default=None,
                        help='Cycle multiplicity (overrides configuration)')
    parser.add_argument('--smoothing-steps', type=int, default=None,
                        help='Smoothing steps (overrides configuration)')
    parser.add_argument('--tolerance', type=float, default=1e-8,
                        help='Relative tolerance of the outer CG')
    parser.add_argument('--max-iterations', type=int, default=200,
                        help='Iteration limit of the outer CG')
    parser.add_argument('--plot', default=None,
                        help='Write the residual history plot to this file')
    parser.add_argument('--log-level', default=None,
                        help='Logging level (overrides configuration)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of ``mgprecond-solve``; returns the exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = PreconditionerConfig.from_file(args.config) if args.config else PreconditionerConfig()
        if args.cycle is not None:
            config.cycle.cycle = args.cycle
        if args.smoothing_steps is not None:
            config.cycle.smoothing_steps = args.smoothing_steps
        if args.log_level is not None:
            config.logging.level = args.log_level.upper()
        config.validate()
    except (MultigridError, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    config.setup_logging()

    problem = build_poisson_1d(args.levels, args.coarse_elements,
                               reaction=args.reaction, galerkin=args.galerkin)
    logger.info(f"Problem: {problem.num_levels} levels, ndofs={problem.hierarchy.ndofs}")

    try:
        with MultigridPreconditioner.from_config(
            config, problem.hierarchy, problem.operators, problem.prolongation
        ) as preconditioner:
            solver = ConjugateGradientSolver(
                max_iterations=args.max_iterations,
                tolerance=args.tolerance,
                preconditioner=preconditioner
            )
            solution, info = solver.solve(
                problem.operators.get_operator(problem.num_levels - 1),
                problem.rhs(),
                free_dofs=problem.hierarchy.free_dofs()
            )
            statistics = preconditioner.statistics()
            memory = total_memory(preconditioner.memory_usage())
            preconditioner.profiler.log_summary()
    except MultigridError as e:
        logger.error(f"Preconditioner failed: {e}")
        return 1

    print(f"Levels: {problem.num_levels}, finest dofs: {problem.ndof}")
    print(f"Cycle: {statistics['cycle']}, smoother: {config.smoother.type}, "
          f"coarse: {statistics['coarse_type']}")
    print(f"Converged: {info['converged']} in {info['iterations']} iterations")
    print(f"Final residual: {info['final_residual']:.3e}")
    print(f"Average reduction factor: {info['convergence_rate']:.3f}")
    print(f"Preconditioner applications: {statistics['applications']}, "
          f"memory: {memory / 1024:.1f} KB")

    if args.reaction == 0.0:
        error = abs(solution - problem.exact_solution()).max()
        print(f"Max nodal error: {error:.3e}")

    if args.plot:
        import matplotlib
        matplotlib.use("Agg")
        from .visualization.convergence_plots import plot_residual_history

        plot_residual_history(
            {f"MG-PCG (cycle {statistics['cycle']})": info['residual_history']},
            save_path=args.plot
        )
        print(f"Residual plot saved to: {args.plot}")

    return 0 if info['converged'] else 1


if __name__ == '__main__':
    sys.exit(main())
