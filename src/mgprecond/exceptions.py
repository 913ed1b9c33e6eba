"""Exception hierarchy for multilevel preconditioners."""

from typing import List, Optional


class MultigridError(Exception):
    """
    Base class for all errors raised by the preconditioner.

    Carries a list of context lines which are appended while the error
    unwinds through the multigrid call stack, so the final message records
    every call site it passed through.
    """

    def __init__(self, message: str, context: Optional[List[str]] = None):
        """
        Initialize error.

        Args:
            message: Primary error message
            context: Initial context lines
        """
        super().__init__(message)
        self.message = message
        self.context: List[str] = list(context) if context else []

    def append(self, context: str) -> 'MultigridError':
        """Append a context line and return self for re-raising."""
        self.context.append(context)
        return self

    def __str__(self) -> str:
        """Message followed by one line per recorded context."""
        if not self.context:
            return self.message
        return self.message + "\n" + "\n".join(self.context)


class ConfigurationError(MultigridError, ValueError):
    """Invalid configuration value or unknown coarse-solve strategy."""


class MissingCollaboratorError(MultigridError, RuntimeError):
    """A required collaborator (smoother, prolongation, coarse solver) is absent or released."""


class HierarchyMismatchError(MultigridError, ValueError):
    """Level dimensions violate the nested dof-prefix invariant."""


class CollaboratorError(MultigridError):
    """
    Failure raised inside a collaborator.

    The original exception is kept as ``__cause__`` and as ``original``.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original

    @classmethod
    def wrap(cls, error: BaseException, context: str) -> 'CollaboratorError':
        """
        Wrap a foreign exception with a first context line.

        Args:
            error: Exception raised by a collaborator
            context: Call site the exception was caught in

        Returns:
            New CollaboratorError (raise it ``from error``)
        """
        wrapped = cls(f"{type(error).__name__}: {error}", original=error)
        wrapped.append(context)
        return wrapped
