"""
Success/failure envelope returned by the booking core.

Core services never let exceptions cross into the API layer: each public
operation returns a ``Result`` and the caller decides how to surface the
error (the HTTP layer simply calls ``unwrap()`` and lets the global
exception handlers render it).
"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from logiflow.app.core.exceptions import AppException, PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[AppException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AppException) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value


def returns_result(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Wrap an async service method so it returns a ``Result``.

    ``AppException`` subclasses become failures as-is; any stray SQLAlchemy
    error is reported as a ``PersistenceError``.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs) -> Result:
        try:
            return Result.success(await func(*args, **kwargs))
        except AppException as exc:
            return Result.failure(exc)
        except SQLAlchemyError as exc:
            logger.error("Store failure in %s: %s", func.__name__, exc)
            return Result.failure(PersistenceError(details={"operation": func.__name__}))
    return wrapper
