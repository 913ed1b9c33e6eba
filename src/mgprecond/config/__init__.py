"""Configuration management for multigrid preconditioners."""

from .settings import (
    PreconditionerConfig, CycleConfig, SmootherConfig, CoarseSolverConfig,
    LoggingConfig, create_default_config, create_w_cycle_config
)

__all__ = [
    "PreconditionerConfig",
    "CycleConfig",
    "SmootherConfig",
    "CoarseSolverConfig",
    "LoggingConfig",
    "create_default_config",
    "create_w_cycle_config",
]
