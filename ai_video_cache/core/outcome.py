"""
Best-effort execution of optional operations.

Caching and usage tracking must never fail the caller. Every such
operation runs through :func:`attempt`, which captures the error in an
:class:`Outcome` instead of raising it. This is the only place where
persistence errors are swallowed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a best-effort operation: a value or the error that replaced it."""
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or ``default`` if the operation failed."""
        return self.value if self.ok else default


def attempt(action: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    """Run ``func`` and capture any error.

    Args:
        action: Human readable description used in the log message
        func: Operation to run
        *args: Positional arguments for ``func``
        **kwargs: Keyword arguments for ``func``

    Returns:
        Outcome holding the return value or the raised exception
    """
    try:
        return Outcome(value=func(*args, **kwargs))
    except Exception as e:
        logger.error("%s failed: %s", action, e)
        return Outcome(error=e)
