"""One-dimensional reaction-diffusion model problem on nested meshes."""

import numpy as np
from typing import Callable, List, Optional
from scipy.sparse import coo_matrix, csr_matrix
import logging

from ..core.hierarchy import NestedHierarchy
from ..operators.provider import LevelOperators
from ..operators.transfer import ParentProlongation

logger = logging.getLogger(__name__)


def assemble_stiffness(coordinates: np.ndarray, elements: np.ndarray, reaction: float = 0.0) -> csr_matrix:
    """
    Assemble the P1 matrix of ``-u'' + reaction * u``.

    Args:
        coordinates: Vertex coordinates
        elements: Integer array of shape ``(num_elements, 2)``
        reaction: Reaction coefficient

    Returns:
        Sparse matrix of size ``len(coordinates)``
    """
    h = np.abs(coordinates[elements[:, 1]] - coordinates[elements[:, 0]])

    stiffness = np.array([[1.0, -1.0], [-1.0, 1.0]])
    mass = np.array([[2.0, 1.0], [1.0, 2.0]]) / 6.0
    local = stiffness[None, :, :] / h[:, None, None] + reaction * mass[None, :, :] * h[:, None, None]

    rows = np.repeat(elements, 2, axis=1).ravel()
    cols = np.tile(elements, (1, 2)).ravel()

    n = coordinates.shape[0]
    return coo_matrix((local.ravel(), (rows, cols)), shape=(n, n)).tocsr()


def assemble_load(coordinates: np.ndarray, elements: np.ndarray,
                  source: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
    """Load vector of ``source`` with midpoint quadrature per element."""
    x0 = coordinates[elements[:, 0]]
    x1 = coordinates[elements[:, 1]]
    h = np.abs(x1 - x0)
    values = np.asarray(source(0.5 * (x0 + x1)), dtype=np.float64) * h * 0.5

    load = np.zeros(coordinates.shape[0])
    np.add.at(load, elements[:, 0], values)
    np.add.at(load, elements[:, 1], values)
    return load


class PoissonProblem:
    """
    P1 finite elements for ``-u'' + c u = f`` on (0, 1) with uniform refinement.

    Each refinement bisects every element and appends the new midpoints to
    the vertex numbering, so coarse dofs are always the leading dofs of a
    finer level. The hierarchy, the level operators and the prolongation
    are kept in sync by :meth:`refine`.
    """

    def __init__(self, coarse_elements: int, reaction: float = 0.0,
                 dirichlet: bool = True, galerkin: bool = False):
        """
        Initialize problem on a uniform coarse mesh.

        Args:
            coarse_elements: Number of elements of the coarse mesh
            reaction: Reaction coefficient c (>= 0)
            dirichlet: Homogeneous Dirichlet conditions at both ends
            galerkin: Build coarse operators by Galerkin projection
        """
        if coarse_elements < 1:
            raise ValueError("Coarse mesh needs at least one element")
        if reaction < 0:
            raise ValueError("Reaction coefficient must be non-negative")
        if not dirichlet and reaction == 0:
            logger.warning("Pure Neumann problem without reaction is singular")

        self.reaction = reaction
        self.dirichlet = dirichlet
        self.galerkin = galerkin

        self.coordinates = np.linspace(0.0, 1.0, coarse_elements + 1)
        self.elements = np.column_stack([
            np.arange(coarse_elements), np.arange(1, coarse_elements + 1)
        ]).astype(np.int64)
        self.level_elements: List[np.ndarray] = [self.elements]

        free_dofs = None
        if dirichlet:
            free_dofs = np.ones(coarse_elements + 1, dtype=bool)
            free_dofs[[0, coarse_elements]] = False

        self.hierarchy = NestedHierarchy([coarse_elements + 1], free_dofs=free_dofs)
        self.prolongation = ParentProlongation(self.hierarchy)

        if galerkin:
            self.operators = LevelOperators.galerkin(self.matrix(), self.prolongation)
        else:
            self.operators = LevelOperators([self.matrix()])

    @property
    def num_levels(self) -> int:
        return self.hierarchy.num_levels

    @property
    def ndof(self) -> int:
        """Number of dofs on the finest level."""
        return self.coordinates.shape[0]

    def matrix(self) -> csr_matrix:
        """Assembled matrix of the finest mesh."""
        return assemble_stiffness(self.coordinates, self.elements, self.reaction)

    def refine(self) -> int:
        """
        Bisect every element of the finest mesh and add the new level.

        Returns:
            Index of the new finest level
        """
        ncoarse = self.ndof
        nelements = self.elements.shape[0]

        midpoints = ncoarse + np.arange(nelements)
        parents = self.elements.copy()

        self.coordinates = np.concatenate([
            self.coordinates,
            0.5 * (self.coordinates[parents[:, 0]] + self.coordinates[parents[:, 1]])
        ])
        self.elements = np.concatenate([
            np.column_stack([parents[:, 0], midpoints]),
            np.column_stack([midpoints, parents[:, 1]])
        ])
        self.level_elements.append(self.elements)

        level = self.hierarchy.add_level(self.ndof)
        self.prolongation.add_level(parents, level=level)

        if self.galerkin:
            self.operators.reassemble_galerkin(self.matrix(), self.prolongation)
        else:
            self.operators.add_level(self.matrix())

        logger.info(f"Refined to level {level}: {self.ndof} dofs, {self.elements.shape[0]} elements")
        return level

    def rhs(self, source: Optional[Callable[[np.ndarray], np.ndarray]] = None) -> np.ndarray:
        """
        Load vector on the finest mesh, zero on constrained dofs.

        Args:
            source: Right-hand side function, defaults to ``f = 1``

        Returns:
            Load vector
        """
        if source is None:
            source = np.ones_like
        load = assemble_load(self.coordinates, self.elements, source)

        free_dofs = self.hierarchy.free_dofs()
        if free_dofs is not None:
            load[~free_dofs] = 0.0
        return load

    def exact_solution(self) -> np.ndarray:
        """Nodal values of the exact solution for ``f = 1``, ``c = 0`` and Dirichlet ends."""
        x = self.coordinates
        return 0.5 * x * (1.0 - x)


def build_poisson_1d(levels: int, coarse_elements: int = 4, reaction: float = 0.0,
                     dirichlet: bool = True, galerkin: bool = False) -> PoissonProblem:
    """
    Build a Poisson problem with a hierarchy of ``levels`` nested meshes.

    Args:
        levels: Number of levels (>= 1)
        coarse_elements: Elements of the coarsest mesh
        reaction: Reaction coefficient
        dirichlet: Homogeneous Dirichlet conditions at both ends
        galerkin: Build coarse operators by Galerkin projection

    Returns:
        Problem with ``levels`` levels
    """
    if levels < 1:
        raise ValueError("Need at least one level")

    problem = PoissonProblem(coarse_elements, reaction, dirichlet, galerkin)
    for _ in range(levels - 1):
        problem.refine()

    logger.debug(f"Built 1D Poisson hierarchy: ndofs={problem.hierarchy.ndofs}")
    return problem
