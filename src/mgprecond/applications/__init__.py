"""Model problems for the multigrid preconditioner."""

from .poisson import PoissonProblem, assemble_load, assemble_stiffness, build_poisson_1d

__all__ = [
    "PoissonProblem",
    "assemble_load",
    "assemble_stiffness",
    "build_poisson_1d",
]
