"""Coarse-grid solve strategies and the cached coarse solver."""

from enum import Enum
from typing import Any, List, Optional, Union
import logging

from ..exceptions import ConfigurationError, MissingCollaboratorError

logger = logging.getLogger(__name__)


class CoarseType(Enum):
    """How the coarsest level is resolved."""
    EXACT = "exact"
    USER = "user"
    ITERATIVE = "iterative"
    SMOOTHING_ONLY = "smoothing"

    @classmethod
    def coerce(cls, value: Union['CoarseType', str]) -> 'CoarseType':
        """
        Convert a name or value to a CoarseType.

        Accepts members, their values (``"exact"``) or names (``"EXACT"``).
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, str):
            key = value.strip()
            for member in cls:
                if key.lower() == member.value or key.upper() == member.name:
                    return member

        raise ConfigurationError(
            f"Unknown coarse type {value!r}, expected one of {[m.value for m in cls]}"
        )


class CoarseSolverCache:
    """
    Cached coarse-grid solver.

    Holds the object applied at level 0 under ``EXACT`` and ``USER``
    coarse types. The entry is only written by ``update`` of the owning
    preconditioner and only read during applications.
    """

    def __init__(self):
        self.solver: Any = None
        self.valid = False
        self.source: Optional[CoarseType] = None
        self.builds = 0

    def store(self, solver: Any, source: CoarseType) -> None:
        """Install a coarse solver and mark the entry valid."""
        self.solver = solver
        self.source = source
        self.valid = solver is not None
        self.builds += 1
        logger.debug(f"Coarse solver cached ({source.value}): {type(solver).__name__}")

    def invalidate(self) -> None:
        """Drop the cached solver."""
        self.solver = None
        self.valid = False
        self.source = None

    def get(self) -> Any:
        """Cached solver; raises if none was built."""
        if not self.valid:
            raise MissingCollaboratorError(
                "No coarse grid solver available at level 0; call update() before applying"
            )
        return self.solver

    def memory_usage(self) -> List:
        """Memory report of the cached solver, if it provides one."""
        if not self.valid:
            return []
        report = getattr(self.solver, "memory_usage", None)
        return list(report()) if report is not None else []
