"""Unit tests for the recursive multigrid preconditioner."""

import numpy as np
import pytest
import sys
from pathlib import Path
from scipy.sparse import identity
from scipy.sparse.linalg import spsolve

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mgprecond.core.hierarchy import NestedHierarchy
from mgprecond.core.ownership import Borrowed, Owned
from mgprecond.exceptions import (
    CollaboratorError, ConfigurationError, HierarchyMismatchError, MissingCollaboratorError
)
from mgprecond.operators.provider import LevelOperators
from mgprecond.preconditioning import CoarseType, MultigridPreconditioner
from mgprecond.smoothers import GaussSeidelSmoother

from tests import tridiagonal


class RecordingSmoother:
    """Smoother double recording every call; smoothing leaves ``u`` unchanged."""

    def __init__(self, hierarchy, fail_on=None):
        self.hierarchy = hierarchy
        self.calls = []
        self.update_flags = []
        self.released = False
        self.fail_on = fail_on

    def update(self, force_full=False):
        self.update_flags.append(force_full)

    def create_vector(self, level):
        return np.zeros(self.hierarchy.num_dofs(level))

    def residual(self, level, u, f):
        self.calls.append(("residual", level, None))
        return f - u

    def pre_smooth(self, level, u, f, steps):
        self.calls.append(("pre", level, steps))

    def post_smooth(self, level, u, f, steps):
        self.calls.append(("post", level, steps))

    def pre_smooth_residual(self, level, u, f, steps):
        if self.fail_on == level:
            raise RuntimeError("boom")
        self.calls.append(("pre", level, steps))
        return f - u

    def memory_usage(self):
        return []

    def release(self):
        self.released = True


class RecordingProlongation:
    """Injection prolongation double."""

    def __init__(self, hierarchy):
        self.hierarchy = hierarchy
        self.restricted = []
        self.prolongated = []
        self.updates = 0
        self.released = False

    def update(self):
        self.updates += 1

    def restrict_in_place(self, level, v):
        self.restricted.append(level)
        v[self.hierarchy.num_dofs(level - 1):] = 0.0

    def prolongate_in_place(self, level, v):
        self.prolongated.append(level)
        v[self.hierarchy.num_dofs(level - 1):] = 0.0

    def release(self):
        self.released = True


class CountingCoarse:
    """Coarse solver double counting its applications."""

    def __init__(self, size):
        self.shape = (size, size)
        self.applications = 0

    def __matmul__(self, f):
        self.applications += 1
        return np.array(f, dtype=np.float64)


def identity_setup(ndofs):
    hierarchy = NestedHierarchy(ndofs)
    operators = LevelOperators([np.eye(n) for n in ndofs])
    return hierarchy, operators


def recording_engine(ndofs=(2, 4, 8, 16), **kwargs):
    hierarchy, operators = identity_setup(list(ndofs))
    smoother = RecordingSmoother(hierarchy)
    prolongation = RecordingProlongation(hierarchy)
    engine = MultigridPreconditioner(hierarchy, operators, smoother, prolongation, **kwargs)
    return engine, smoother, prolongation


def spd_single_level(n=6, seed=0):
    rng = np.random.default_rng(seed)
    hierarchy = NestedHierarchy([n])
    matrix = (tridiagonal(n) + 0.1 * identity(n, format="csr")).tocsr()
    operators = LevelOperators([matrix])
    return hierarchy, operators, matrix, rng.standard_normal(n)


class TestConfiguration:
    """Test cases for setters and defaults."""

    def test_defaults(self):
        engine, _, _ = recording_engine()

        assert engine.smoothing_steps == 1
        assert engine.cycle == 1
        assert engine.smoothing_step_increase == 1
        assert engine.coarse_type is CoarseType.EXACT
        assert engine.coarse_smoothing_steps == 1
        assert engine.update_all is False
        assert engine.update_always is False
        assert engine.shape == (16, 16)

    def test_galerkin_operators_default_update_all(self):
        hierarchy = NestedHierarchy([2, 4])
        operators = LevelOperators([np.eye(2), np.eye(4)], use_galerkin=True)
        engine = MultigridPreconditioner(hierarchy, operators, RecordingSmoother(hierarchy),
                                         RecordingProlongation(hierarchy))

        assert engine.update_all is True

    def test_invalid_values_rejected(self):
        engine, _, _ = recording_engine()

        with pytest.raises(ConfigurationError):
            engine.set_smoothing_steps(0)
        with pytest.raises(ConfigurationError):
            engine.set_cycle(-1)
        with pytest.raises(ConfigurationError):
            engine.set_increase_smoothing_steps(0)
        with pytest.raises(ConfigurationError):
            engine.set_coarse_smoothing_steps(0)
        with pytest.raises(ConfigurationError):
            engine.set_smoothing_steps(1.5)
        with pytest.raises(ValueError):
            engine.set_coarse_type("multigrid")

    def test_coarse_type_coercion(self):
        engine, _, _ = recording_engine()

        engine.set_coarse_type("iterative")
        assert engine.coarse_type is CoarseType.ITERATIVE
        engine.set_coarse_type("SMOOTHING_ONLY")
        assert engine.coarse_type is CoarseType.SMOOTHING_ONLY

    def test_user_coarse_switches_type(self):
        engine, _, _ = recording_engine()
        engine.set_coarse_grid_preconditioner(CountingCoarse(2))

        assert engine.coarse_type is CoarseType.USER


class TestCycleStructure:
    """Test cases for the recursion pattern of the cycle."""

    @pytest.mark.parametrize("cycle", [1, 2, 3])
    def test_coarse_visit_count(self, cycle):
        """The coarse solver runs cycle^(L-1) times per application."""
        engine, _, _ = recording_engine(cycle=cycle)
        coarse = CountingCoarse(2)
        engine.set_coarse_grid_preconditioner(coarse)
        engine.update()

        engine.apply(np.ones(16))

        assert coarse.applications == cycle ** 3

    def test_v_cycle_call_order(self):
        engine, smoother, prolongation = recording_engine(ndofs=(2, 4, 8))
        engine.update()
        engine.apply(np.ones(8))

        assert smoother.calls == [
            ("pre", 2, 1), ("pre", 1, 1), ("post", 1, 1), ("post", 2, 1)
        ]
        assert prolongation.restricted == [2, 1]
        assert prolongation.prolongated == [1, 2]

    def test_smoothing_steps_grow_per_level(self):
        """Steps multiply by the increase factor on each coarser level."""
        engine, smoother, _ = recording_engine(smoothing_steps=2, smoothing_step_increase=2)
        engine.update()
        engine.apply(np.ones(16))

        pre_steps = {level: steps for kind, level, steps in smoother.calls if kind == "pre"}
        post_steps = {level: steps for kind, level, steps in smoother.calls if kind == "post"}

        assert pre_steps == {3: 2, 2: 4, 1: 8}
        assert post_steps == pre_steps

    def test_cycle_zero_only_smooths_finest(self):
        engine, smoother, prolongation = recording_engine(cycle=0, smoothing_steps=3)
        coarse = CountingCoarse(2)
        engine.set_coarse_grid_preconditioner(coarse)
        engine.update()

        engine.apply(np.ones(16))

        assert [call[0] for call in smoother.calls] == ["pre", "post"]
        assert smoother.calls[0] == ("pre", 3, 3)
        assert prolongation.restricted == []
        assert coarse.applications == 0

    def test_apply_does_not_modify_input(self):
        engine, _, _ = recording_engine()
        engine.update()

        f = np.linspace(0.0, 1.0, 16)
        original = f.copy()
        engine.apply(f)

        np.testing.assert_array_equal(f, original)

    def test_rhs_length_checked(self):
        engine, _, _ = recording_engine()
        engine.update()

        with pytest.raises(HierarchyMismatchError):
            engine.apply(np.ones(15))


class TestCoarseStrategies:
    """Test cases for the level-0 solve."""

    def test_single_level_exact_solve(self):
        """With one level the preconditioner is the exact inverse."""
        hierarchy, operators, matrix, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None)
        engine.update()

        np.testing.assert_allclose(engine.apply(f), spsolve(matrix.tocsc(), f), rtol=1e-10)

    def test_exact_defect_correction_idempotent(self):
        """Extra defect-correction passes do not change an exact coarse solve."""
        hierarchy, operators, matrix, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None,
                                         coarse_smoothing_steps=3)
        engine.update()

        np.testing.assert_allclose(engine.apply(f), spsolve(matrix.tocsc(), f), rtol=1e-10, atol=1e-12)

    def test_iterative_coarse_solve(self):
        hierarchy, operators, matrix, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None,
                                         coarse_type="iterative", coarse_tolerance=1e-12)
        engine.update()

        assert engine.coarse_solver is None
        np.testing.assert_allclose(engine.apply(f), spsolve(matrix.tocsc(), f), rtol=1e-8)

    def test_smoothing_only_zero_rhs(self):
        hierarchy, operators, _, _ = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None,
                                         coarse_type=CoarseType.SMOOTHING_ONLY, coarse_smoothing_steps=4)
        engine.update()

        np.testing.assert_array_equal(engine.apply(np.zeros(6)), np.zeros(6))

    def test_single_level_smoothing_only_ignores_cycle(self):
        """With one level the application is plain pre- plus post-smoothing."""
        hierarchy, operators, _, f = spd_single_level()
        smoother = GaussSeidelSmoother(hierarchy, operators)
        smoother.update()

        expected = np.zeros(6)
        smoother.pre_smooth(0, expected, f, 2)
        smoother.post_smooth(0, expected, f, 2)

        for cycle in (0, 1, 2):
            engine = MultigridPreconditioner(hierarchy, operators, Borrowed(smoother), None, cycle=cycle,
                                             coarse_type=CoarseType.SMOOTHING_ONLY, coarse_smoothing_steps=2)
            engine.update()
            np.testing.assert_allclose(engine.apply(f), expected, rtol=1e-14)

    def test_smoothing_only_is_linear(self):
        hierarchy, operators, _, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None,
                                         coarse_type=CoarseType.SMOOTHING_ONLY)
        engine.update()

        np.testing.assert_allclose(engine.apply(2.0 * f), 2.0 * engine.apply(f), rtol=1e-12)

    def test_user_coarse_solver(self):
        engine, _, _ = recording_engine(ndofs=(2, 4))
        engine.set_coarse_grid_preconditioner(Borrowed(np.diag([2.0, 3.0])))
        engine.update()

        # injection double: only the coarse prefix is corrected
        np.testing.assert_allclose(engine.apply(np.ones(4)), [2.0, 3.0, 0.0, 0.0])

    def test_unknown_coarse_type_at_dispatch(self):
        hierarchy, operators, _, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None)
        engine.update()
        engine._coarse_type = "bogus"

        with pytest.raises(ConfigurationError):
            engine.apply(f)


class TestErrors:
    """Test cases for missing collaborators and error annotation."""

    def test_missing_smoother(self):
        hierarchy, operators = identity_setup([2, 4])
        engine = MultigridPreconditioner(hierarchy, operators, None, RecordingProlongation(hierarchy))
        engine.update()

        with pytest.raises(MissingCollaboratorError) as excinfo:
            engine.apply(np.ones(4))

        message = str(excinfo.value)
        assert "in mgm at level 1" in message
        assert "in MultigridPreconditioner.apply" in message

    def test_missing_prolongation(self):
        hierarchy, operators = identity_setup([2, 4])
        engine = MultigridPreconditioner(hierarchy, operators, RecordingSmoother(hierarchy), None)
        engine.update()

        with pytest.raises(MissingCollaboratorError):
            engine.apply(np.ones(4))

    def test_apply_before_update(self):
        """No coarse solver exists before the first update."""
        hierarchy, operators = identity_setup([3])
        engine = MultigridPreconditioner(hierarchy, operators, None, None)

        with pytest.raises(MissingCollaboratorError) as excinfo:
            engine.apply(np.ones(3))

        assert "update()" in str(excinfo.value)
        assert "in mgm at level 0" in str(excinfo.value)

    def test_collaborator_failure_annotated_per_level(self):
        hierarchy, operators = identity_setup([2, 4, 8])
        smoother = RecordingSmoother(hierarchy, fail_on=1)
        engine = MultigridPreconditioner(hierarchy, operators, smoother, RecordingProlongation(hierarchy))
        engine.update()

        with pytest.raises(CollaboratorError) as excinfo:
            engine.apply(np.ones(8))

        error = excinfo.value
        assert isinstance(error.__cause__, RuntimeError)
        assert isinstance(error.original, RuntimeError)
        assert error.context == [
            "in mgm at level 1",
            "in mgm at level 2",
            "in MultigridPreconditioner.apply",
        ]
        assert str(error).startswith("RuntimeError: boom")

    def test_failed_application_not_counted(self):
        engine, _, _ = recording_engine(ndofs=(2, 4))
        engine.update()
        engine.apply(np.ones(4))

        with pytest.raises(HierarchyMismatchError):
            engine.apply(np.ones(3))

        assert engine.statistics()["applications"] == 1

    def test_update_failure_annotated(self):
        hierarchy = NestedHierarchy([2, 4])
        operators = LevelOperators([np.eye(2)])
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None)

        with pytest.raises(CollaboratorError) as excinfo:
            engine.update()

        assert excinfo.value.context[-1] == "in MultigridPreconditioner.update"


class TestLifecycle:
    """Test cases for update, ownership and diagnostics."""

    def test_coarse_rebuilt_only_when_required(self):
        engine, _, _ = recording_engine(ndofs=(2, 4))

        engine.update()
        engine.update()
        assert engine.statistics()["coarse_builds"] == 1

        engine.set_update_all(True)
        engine.update()
        engine.update()
        assert engine.statistics()["coarse_builds"] == 3

    def test_single_level_always_rebuilds(self):
        hierarchy, operators = identity_setup([3])
        engine = MultigridPreconditioner(hierarchy, operators, None, None)

        engine.update()
        engine.update()
        assert engine.statistics()["coarse_builds"] == 2

    def test_update_refreshes_collaborators(self):
        engine, smoother, prolongation = recording_engine(update_always=True)
        engine.update()

        assert smoother.update_flags == [True]
        assert prolongation.updates == 1

    def test_close_releases_owned(self):
        engine, smoother, prolongation = recording_engine()
        engine.close()

        assert smoother.released
        assert not prolongation.released
        assert engine.smoother is None
        assert engine.prolongation is None

    def test_owned_prolongation_released(self):
        hierarchy, operators = identity_setup([2, 4])
        prolongation = RecordingProlongation(hierarchy)

        with MultigridPreconditioner(hierarchy, operators, None, Owned(prolongation)):
            pass

        assert prolongation.released

    def test_reassembly_rebuilds_coarse_solver(self, rng):
        ndofs = [3, 6]
        hierarchy = NestedHierarchy(ndofs)
        operators = LevelOperators([tridiagonal(n) for n in ndofs])
        engine = MultigridPreconditioner(hierarchy, operators, RecordingSmoother(hierarchy),
                                         RecordingProlongation(hierarchy), update_all=True)
        engine.update()
        assert engine.statistics()["coarse_builds"] == 1

        reassembled = tridiagonal(3, coupling=4.0)
        operators.set_operator(0, reassembled)
        engine.update()

        f = rng.standard_normal(3)
        assert engine.statistics()["coarse_builds"] == 2
        np.testing.assert_allclose(engine.coarse_solver @ f, spsolve(reassembled.tocsc(), f), rtol=1e-10)

    def test_borrowed_not_released(self):
        hierarchy, operators = identity_setup([2, 4])
        smoother = RecordingSmoother(hierarchy)
        prolongation = RecordingProlongation(hierarchy)

        with MultigridPreconditioner(hierarchy, operators, Borrowed(smoother), Borrowed(prolongation)):
            pass

        assert not smoother.released
        assert not prolongation.released

    def test_statistics_and_memory(self):
        hierarchy, operators, _, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, GaussSeidelSmoother(hierarchy, operators), None)
        engine.update()
        engine.apply(f)
        engine @ f

        statistics = engine.statistics()
        assert statistics["applications"] == 2
        assert statistics["ndofs"] == [6]
        assert any(usage.name == "SparseInverse" for usage in engine.memory_usage())

    def test_as_linear_operator(self):
        hierarchy, operators, matrix, f = spd_single_level()
        engine = MultigridPreconditioner(hierarchy, operators, None, None)
        engine.update()

        linear_operator = engine.as_linear_operator()
        assert linear_operator.shape == (6, 6)
        np.testing.assert_allclose(linear_operator.matvec(f), spsolve(matrix.tocsc(), f), rtol=1e-10)
