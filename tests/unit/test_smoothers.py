"""Unit tests for level smoothers."""

import numpy as np
import pytest
import sys
from pathlib import Path
from scipy.sparse.linalg import spsolve

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mgprecond.core.hierarchy import NestedHierarchy
from mgprecond.exceptions import ConfigurationError, MissingCollaboratorError
from mgprecond.operators.provider import LevelOperators
from mgprecond.smoothers import GaussSeidelSmoother, JacobiSmoother, create_smoother

from tests import tridiagonal


def make_setup(ndofs=(5,), free_dofs=None):
    hierarchy = NestedHierarchy(list(ndofs), free_dofs=free_dofs)
    operators = LevelOperators([tridiagonal(n) for n in ndofs])
    return hierarchy, operators


class TestJacobiSmoother:
    """Test cases for damped Jacobi."""

    def test_diagonal_system_solved_in_one_sweep(self):
        """Undamped Jacobi is exact for diagonal matrices."""
        hierarchy = NestedHierarchy([3])
        operators = LevelOperators([np.diag([1.0, 2.0, 4.0])])
        smoother = JacobiSmoother(hierarchy, operators, damping=1.0)
        smoother.update()

        u = np.zeros(3)
        f = np.array([1.0, 1.0, 1.0])
        smoother.pre_smooth(0, u, f, 1)

        np.testing.assert_allclose(u, [1.0, 0.5, 0.25])

    def test_reduces_residual(self, rng):
        hierarchy, operators = make_setup((9,))
        smoother = JacobiSmoother(hierarchy, operators)
        smoother.update()

        u = np.zeros(9)
        f = rng.standard_normal(9)
        before = np.linalg.norm(smoother.residual(0, u, f))
        smoother.pre_smooth(0, u, f, 5)

        assert np.linalg.norm(smoother.residual(0, u, f)) < before


class TestGaussSeidelSmoother:
    """Test cases for symmetric Gauss-Seidel."""

    def test_converges_to_solution(self, rng):
        hierarchy, operators = make_setup((6,))
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()

        f = rng.standard_normal(6)
        u = np.zeros(6)
        for _ in range(200):
            smoother.pre_smooth(0, u, f, 1)
            smoother.post_smooth(0, u, f, 1)

        expected = spsolve(operators.matrix(0).tocsc(), f)
        np.testing.assert_allclose(u, expected, rtol=1e-8, atol=1e-10)

    def test_forward_and_backward_differ(self, rng):
        """Pre-smoothing sweeps forward, post-smoothing backward."""
        hierarchy, operators = make_setup((6,))
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()

        f = rng.standard_normal(6)
        forward = np.zeros(6)
        backward = np.zeros(6)
        smoother.pre_smooth(0, forward, f, 1)
        smoother.post_smooth(0, backward, f, 1)

        assert not np.allclose(forward, backward)

    def test_constrained_dofs_untouched(self, rng):
        mask = np.array([False, True, True, True, True, False])
        hierarchy, operators = make_setup((6,), free_dofs=mask)
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()

        u = np.zeros(6)
        u[0] = 3.0
        f = rng.standard_normal(6)
        smoother.pre_smooth(0, u, f, 3)
        d = smoother.residual(0, u, f)

        assert u[0] == 3.0
        assert u[5] == 0.0
        assert d[0] == 0.0 and d[5] == 0.0

    def test_pre_smooth_residual(self, rng):
        hierarchy, operators = make_setup((5,))
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()

        f = rng.standard_normal(5)
        u = np.zeros(5)
        d = smoother.pre_smooth_residual(0, u, f, 2)

        np.testing.assert_allclose(d, f - operators.matrix(0) @ u)


class TestSmootherLifecycle:
    """Test cases for update and release."""

    def test_update_builds_only_new_levels(self):
        hierarchy, operators = make_setup((3,))
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()
        first = smoother.levels[0]

        hierarchy.add_level(5)
        operators.add_level(tridiagonal(5))
        smoother.update()

        assert smoother.levels[0] is first
        assert 1 in smoother.levels

    def test_forced_update_rebuilds_all(self):
        hierarchy, operators = make_setup((3, 5))
        smoother = JacobiSmoother(hierarchy, operators)
        smoother.update()
        first = smoother.levels[0]

        smoother.update(force_full=True)
        assert smoother.levels[0] is not first

        second = smoother.levels[0]
        smoother.set_update_all(True)
        smoother.update()
        assert smoother.levels[0] is not second

    def test_use_before_update(self):
        hierarchy, operators = make_setup((3,))
        smoother = JacobiSmoother(hierarchy, operators)

        with pytest.raises(MissingCollaboratorError):
            smoother.pre_smooth(0, np.zeros(3), np.ones(3), 1)

    def test_use_after_release(self):
        hierarchy, operators = make_setup((3,))
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()
        smoother.release()

        with pytest.raises(MissingCollaboratorError):
            smoother.residual(0, np.zeros(3), np.ones(3))

    def test_create_vector(self):
        hierarchy, operators = make_setup((3, 5))
        smoother = JacobiSmoother(hierarchy, operators)

        np.testing.assert_array_equal(smoother.create_vector(1), np.zeros(5))

    def test_memory_usage(self):
        hierarchy, operators = make_setup((3, 5))
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()

        usage = smoother.memory_usage()
        assert usage[0].nbytes > 0
        assert usage[0].blocks == 4


class TestCreateSmoother:
    """Test cases for the smoother factory."""

    def test_known_types(self):
        hierarchy, operators = make_setup((3,))

        assert isinstance(create_smoother("jacobi", hierarchy, operators, damping=0.5), JacobiSmoother)
        assert isinstance(create_smoother("gauss_seidel", hierarchy, operators), GaussSeidelSmoother)

    def test_unknown_type(self):
        hierarchy, operators = make_setup((3,))
        with pytest.raises(ConfigurationError):
            create_smoother("sor", hierarchy, operators)
