"""Logging utilities for multilevel preconditioners."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union
import time
from contextlib import contextmanager


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        """Add color to the level name without mutating the shared record."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = self.COLORS[levelname] + levelname + self.COLORS['RESET']
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class ElapsedTimeFilter(logging.Filter):
    """Filter adding the time since logging setup to each record."""

    def __init__(self):
        super().__init__()
        self.start_time = time.time()

    def filter(self, record):
        record.elapsed_time = time.time() - self.start_time
        return True


def setup_logging(
    level: Union[str, int] = logging.INFO,
    format_string: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    console_output: bool = True,
    colored_console: bool = True,
    include_elapsed: bool = False
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level
        format_string: Custom format string
        log_file: Path to log file (optional)
        console_output: Enable console output
        colored_console: Use colored console output
        include_elapsed: Prefix messages with elapsed seconds
    """
    if format_string is None:
        if include_elapsed:
            format_string = '%(asctime)s - %(name)s - %(levelname)s - [%(elapsed_time).3fs] - %(message)s'
        else:
            format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        if colored_console:
            console_handler.setFormatter(ColoredFormatter(format_string))
        else:
            console_handler.setFormatter(logging.Formatter(format_string))

        if include_elapsed:
            console_handler.addFilter(ElapsedTimeFilter())

        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(format_string))

        if include_elapsed:
            file_handler.addFilter(ElapsedTimeFilter())

        root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: level={logging.getLevelName(level)}, "
                f"console={console_output}, file={log_file is not None}")


class LoggingContext:
    """Context manager for temporary logging configuration."""

    def __init__(self, level: Union[str, int], logger_name: Optional[str] = None):
        """
        Initialize logging context.

        Args:
            level: Temporary logging level
            logger_name: Specific logger to modify (None for root)
        """
        self.new_level = level
        self.logger_name = logger_name
        self.original_level = None
        self.logger = None

    def __enter__(self):
        """Enter context - set new logging level."""
        self.logger = logging.getLogger(self.logger_name)
        self.original_level = self.logger.level
        self.logger.setLevel(self.new_level)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context - restore original logging level."""
        if self.logger and self.original_level is not None:
            self.logger.setLevel(self.original_level)


@contextmanager
def debug_logging(logger_name: Optional[str] = "mgprecond"):
    """Temporarily enable debug logging for the package (or a given logger)."""
    with LoggingContext(logging.DEBUG, logger_name) as logger:
        yield logger
