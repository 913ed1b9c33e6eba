"""Ownership holders for injected collaborators."""

from typing import Any, Generic, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Held(Generic[T]):
    """Reference to a collaborator together with its ownership."""

    owns = False

    def __init__(self, target: T):
        self.target = target

    def release(self) -> None:
        """Release the collaborator if owned."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.target!r})"


class Owned(Held[T]):
    """Exclusively owned collaborator, released together with its holder."""

    owns = True

    def release(self) -> None:
        release = getattr(self.target, "release", None)
        if release is not None:
            release()
            logger.debug(f"Released owned {type(self.target).__name__}")


class Borrowed(Held[T]):
    """Externally managed collaborator, never released by the holder."""


def hold(target: Any, owned: bool = True) -> Optional[Held]:
    """
    Wrap a collaborator in a holder.

    Bare objects are taken as owned, or as borrowed when ``owned`` is
    False; ``Borrowed(...)`` or ``Owned(...)`` instances are kept as given.

    Args:
        target: Collaborator, holder or None
        owned: Ownership of a bare ``target``

    Returns:
        Holder, or None when ``target`` is None
    """
    if target is None:
        return None
    if isinstance(target, Held):
        return target
    return Owned(target) if owned else Borrowed(target)
