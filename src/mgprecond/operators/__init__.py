"""Level operators and grid transfer operators."""

from .base import BaseOperator, LevelOperator, LevelOperatorProvider
from .sparse import SparseOperator, SparseInverse
from .provider import LevelOperators
from .transfer import BaseProlongation, ParentProlongation, MatrixProlongation

__all__ = [
    "BaseOperator",
    "LevelOperator",
    "LevelOperatorProvider",
    "SparseOperator",
    "SparseInverse",
    "LevelOperators",
    "BaseProlongation",
    "ParentProlongation",
    "MatrixProlongation",
]
