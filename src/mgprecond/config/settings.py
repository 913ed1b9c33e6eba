"""Configuration classes for multigrid preconditioner settings."""

import json
import yaml
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Union
from pathlib import Path
import logging

from ..exceptions import ConfigurationError
from ..preconditioning.coarse import CoarseType

logger = logging.getLogger(__name__)


@dataclass
class CycleConfig:
    """Configuration of the multigrid cycle."""
    smoothing_steps: int = 1
    cycle: int = 1
    smoothing_step_increase: int = 1
    coarse_smoothing_steps: int = 1
    coarse_type: str = "exact"
    update_all: Optional[bool] = None
    update_always: bool = False

    def validate(self) -> None:
        """Validate cycle configuration."""
        if self.smoothing_steps < 1:
            raise ConfigurationError("Smoothing steps must be at least 1")

        if self.cycle < 0:
            raise ConfigurationError("Cycle must be non-negative")

        if self.smoothing_step_increase < 1:
            raise ConfigurationError("Smoothing step increase must be at least 1")

        if self.coarse_smoothing_steps < 1:
            raise ConfigurationError("Coarse smoothing steps must be at least 1")

        CoarseType.coerce(self.coarse_type)

        if self.cycle > 2:
            logger.warning(f"Cycle {self.cycle} visits the coarse level "
                           f"{self.cycle}^(levels-1) times per application")


@dataclass
class SmootherConfig:
    """Configuration of the level smoother."""
    type: str = "gauss_seidel"
    damping: float = 2.0 / 3.0

    def validate(self) -> None:
        """Validate smoother configuration."""
        valid_smoothers = ["jacobi", "gauss_seidel"]
        if self.type not in valid_smoothers:
            raise ConfigurationError(f"Invalid smoother type: {self.type}")

        if self.damping <= 0:
            raise ConfigurationError("Damping must be positive")

        if self.damping > 1:
            logger.warning(f"Damping parameter {self.damping} may cause instability")


@dataclass
class CoarseSolverConfig:
    """Configuration of the iterative coarse solver."""
    tolerance: float = 1e-10
    max_iterations: int = 1000

    def validate(self) -> None:
        """Validate coarse solver configuration."""
        if self.tolerance <= 0:
            raise ConfigurationError("Coarse tolerance must be positive")

        if self.max_iterations <= 0:
            raise ConfigurationError("Coarse max iterations must be positive")


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_output: Optional[str] = None
    console_output: bool = True

    def validate(self) -> None:
        """Validate logging configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(f"Invalid logging level: {self.level}")


@dataclass
class PreconditionerConfig:
    """Complete configuration of a multigrid preconditioner."""
    cycle: CycleConfig = None
    smoother: SmootherConfig = None
    coarse_solver: CoarseSolverConfig = None
    logging: LoggingConfig = None

    def __post_init__(self):
        """Initialize default configurations if not provided."""
        if self.cycle is None:
            self.cycle = CycleConfig()
        if self.smoother is None:
            self.smoother = SmootherConfig()
        if self.coarse_solver is None:
            self.coarse_solver = CoarseSolverConfig()
        if self.logging is None:
            self.logging = LoggingConfig()

    def validate(self) -> None:
        """Validate all configuration sections."""
        self.cycle.validate()
        self.smoother.validate()
        self.coarse_solver.validate()
        self.logging.validate()

        if self.cycle.cycle == 0 and self.cycle.coarse_type != "smoothing":
            logger.debug("Cycle 0 never reaches the coarse level; coarse settings are unused")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'PreconditionerConfig':
        """Create configuration from dictionary."""
        config = cls()
        sections = {
            'cycle': CycleConfig,
            'smoother': SmootherConfig,
            'coarse_solver': CoarseSolverConfig,
            'logging': LoggingConfig,
        }

        unknown = set(config_dict or {}) - set(sections)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")

        for key, section_class in sections.items():
            if key in (config_dict or {}):
                try:
                    setattr(config, key, section_class(**config_dict[key]))
                except TypeError as e:
                    raise ConfigurationError(f"Invalid '{key}' section: {e}") from e

        return config

    @classmethod
    def from_json(cls, json_path: Union[str, Path]) -> 'PreconditionerConfig':
        """Load configuration from JSON file."""
        json_path = Path(json_path)

        if not json_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {json_path}")

        with open(json_path, 'r') as f:
            config_dict = json.load(f)

        config = cls.from_dict(config_dict)
        config.validate()

        logger.info(f"Loaded configuration from {json_path}")
        return config

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> 'PreconditionerConfig':
        """Load configuration from YAML file."""
        yaml_path = Path(yaml_path)

        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)

        config = cls.from_dict(config_dict or {})
        config.validate()

        logger.info(f"Loaded configuration from {yaml_path}")
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'PreconditionerConfig':
        """Load configuration choosing the format from the file suffix."""
        path = Path(path)
        if path.suffix.lower() == ".json":
            return cls.from_json(path)
        if path.suffix.lower() in (".yaml", ".yml"):
            return cls.from_yaml(path)
        raise ConfigurationError(f"Unsupported configuration format: {path.suffix}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'cycle': asdict(self.cycle),
            'smoother': asdict(self.smoother),
            'coarse_solver': asdict(self.coarse_solver),
            'logging': asdict(self.logging)
        }

    def to_json(self, json_path: Union[str, Path], indent: int = 2) -> None:
        """Save configuration to JSON file."""
        json_path = Path(json_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)

        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=indent)

        logger.info(f"Saved configuration to {json_path}")

    def to_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        yaml_path = Path(yaml_path)
        yaml_path.parent.mkdir(parents=True, exist_ok=True)

        with open(yaml_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

        logger.info(f"Saved configuration to {yaml_path}")

    def setup_logging(self) -> None:
        """Setup logging based on configuration."""
        from ..utils.logging_utils import setup_logging

        self.logging.validate()
        setup_logging(
            level=self.logging.level.upper(),
            format_string=self.logging.format,
            log_file=self.logging.file_output,
            console_output=self.logging.console_output,
            colored_console=False
        )

    def __str__(self) -> str:
        """String representation of configuration."""
        return (f"PreconditionerConfig(cycle={self.cycle.cycle}, "
                f"smoother={self.smoother.type}, coarse={self.cycle.coarse_type})")


def create_default_config() -> PreconditionerConfig:
    """Create default configuration (V-cycle, Gauss-Seidel, exact coarse solve)."""
    return PreconditionerConfig()


def create_w_cycle_config() -> PreconditionerConfig:
    """Create a W-cycle configuration with growing smoothing steps."""
    config = PreconditionerConfig()
    config.cycle.cycle = 2
    config.cycle.smoothing_steps = 2
    config.cycle.smoothing_step_increase = 2
    return config
