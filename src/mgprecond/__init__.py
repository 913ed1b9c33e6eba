"""
Multilevel Preconditioners for Nested Discretizations

Recursive multigrid (V-, W- and general cycles) used as a preconditioner
for Krylov solvers on hierarchies of nested finite element spaces.
"""

# Version information
from ._version import __version__

from .exceptions import (
    MultigridError, ConfigurationError, MissingCollaboratorError,
    HierarchyMismatchError, CollaboratorError
)
from .core import DiscretizationHierarchy, NestedHierarchy, Borrowed, Owned
from .operators import (
    LevelOperatorProvider, LevelOperators, SparseOperator, SparseInverse,
    BaseProlongation, ParentProlongation, MatrixProlongation
)
from .smoothers import BaseSmoother, JacobiSmoother, GaussSeidelSmoother, create_smoother
from .solvers import ConjugateGradientSolver
from .preconditioning import (
    CoarseType, MultigridPreconditioner, TwoLevelPreconditioner
)
from .config import PreconditionerConfig

__all__ = [
    "MultigridError",
    "ConfigurationError",
    "MissingCollaboratorError",
    "HierarchyMismatchError",
    "CollaboratorError",
    "DiscretizationHierarchy",
    "NestedHierarchy",
    "Borrowed",
    "Owned",
    "LevelOperatorProvider",
    "LevelOperators",
    "SparseOperator",
    "SparseInverse",
    "BaseProlongation",
    "ParentProlongation",
    "MatrixProlongation",
    "BaseSmoother",
    "JacobiSmoother",
    "GaussSeidelSmoother",
    "create_smoother",
    "ConjugateGradientSolver",
    "CoarseType",
    "MultigridPreconditioner",
    "TwoLevelPreconditioner",
    "PreconditionerConfig",
]
