"""
Test Suite for mgprecond

Unit tests cover the individual collaborators (hierarchy, transfer,
smoothers, Krylov solver, configuration) and the multigrid engine against
recording test doubles; integration tests run complete preconditioned
solves on nested hierarchies.
"""

import numpy as np
import sys
from pathlib import Path
from scipy.sparse import diags, identity

# Add src directory to path for imports
test_dir = Path(__file__).parent
src_dir = test_dir.parent / 'src'
sys.path.insert(0, str(src_dir))

from mgprecond.core.hierarchy import NestedHierarchy
from mgprecond.operators.provider import LevelOperators
from mgprecond.operators.transfer import ParentProlongation

# Test configuration
TEST_CONFIG = {
    'tolerance': {
        'exact': 1e-10,
        'one_cycle': 1e-3,
        'pcg': 1e-8,
    },
    'ndofs': [4, 10, 25],
    'max_iterations': 100,
}


def tridiagonal(n, coupling=1.0):
    """Sparse ``coupling * tridiag(-1, 2, -1)`` of size n."""
    return diags([-coupling, 2.0 * coupling, -coupling], [-1, 0, 1], shape=(n, n), format="csr")


def random_parents(ndofs, seed=0):
    """Random parent pairs (each parent precedes its child) for every level >= 1."""
    rng = np.random.default_rng(seed)
    parents = []
    for level in range(1, len(ndofs)):
        level_parents = [rng.integers(0, dof, size=2) for dof in range(ndofs[level - 1], ndofs[level])]
        parents.append(np.array(level_parents, dtype=np.int64).reshape(-1, 2))
    return parents


def random_nested_problem(ndofs=(4, 10, 25), seed=0, coupling=0.01):
    """
    Nested hierarchy with random hierarchical prolongation and Galerkin operators.

    The finest operator is ``I + coupling * tridiag(-1, 2, -1)``.

    Returns:
        Tuple of (hierarchy, operators, prolongation)
    """
    hierarchy = NestedHierarchy(list(ndofs))
    prolongation = ParentProlongation(hierarchy, random_parents(ndofs, seed))
    fine = (identity(ndofs[-1], format="csr") + tridiagonal(ndofs[-1], coupling)).tocsr()
    operators = LevelOperators.galerkin(fine, prolongation)
    return hierarchy, operators, prolongation


__all__ = ['TEST_CONFIG', 'tridiagonal', 'random_parents', 'random_nested_problem']
