"""
Version information for the mgprecond package.
"""

# Version follows semantic versioning: MAJOR.MINOR.PATCH
__version__ = "0.3.0"

# Version components for programmatic access
VERSION_INFO = tuple(int(x) for x in __version__.split('.'))

# Development status
DEV_STATUS = "beta"  # alpha, beta, rc, stable
