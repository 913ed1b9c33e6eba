"""Level smoothers for multigrid cycles."""

from .base import BaseSmoother, LevelData
from .relaxation import JacobiSmoother, GaussSeidelSmoother
from ..exceptions import ConfigurationError

SMOOTHERS = {
    "jacobi": JacobiSmoother,
    "gauss_seidel": GaussSeidelSmoother,
}


def create_smoother(kind, hierarchy, operators, **kwargs) -> BaseSmoother:
    """
    Create a smoother by name.

    Args:
        kind: One of ``SMOOTHERS``
        hierarchy: Discretization hierarchy
        operators: Level operators
        **kwargs: Smoother-specific options (e.g. ``damping``)

    Returns:
        Smoother instance (not yet updated)
    """
    try:
        smoother_class = SMOOTHERS[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown smoother type '{kind}', expected one of {sorted(SMOOTHERS)}"
        ) from None
    return smoother_class(hierarchy, operators, **kwargs)


__all__ = [
    "BaseSmoother",
    "LevelData",
    "JacobiSmoother",
    "GaussSeidelSmoother",
    "SMOOTHERS",
    "create_smoother",
]
