"""Shared pytest fixtures."""

import numpy as np
import pytest

from tests import random_nested_problem


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def nested_problem():
    """(hierarchy, operators, prolongation) on ndofs [4, 10, 25]."""
    return random_nested_problem((4, 10, 25), seed=0)
