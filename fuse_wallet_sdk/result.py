"""
Result type returned by authentication and REST module calls
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

E = TypeVar("E", bound=Exception)
T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Result(Generic[E, T]):
    """Either an error or a data value, never both"""
    error: Optional[E] = None
    data: Optional[T] = None

    def __post_init__(self):
        if self.error is not None and self.data is not None:
            raise ValueError("Result cannot hold both an error and data")

    @classmethod
    def ok(cls, data: T) -> "Result[E, T]":
        return cls(data=data)

    @classmethod
    def fail(cls, error: E) -> "Result[E, T]":
        if error is None:
            raise ValueError("Result.fail requires an error")
        return cls(error=error)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def has_data(self) -> bool:
        return self.error is None

    def pick(
        self,
        on_error: Optional[Callable[[E], R]] = None,
        on_data: Optional[Callable[[T], R]] = None,
    ) -> Optional[R]:
        if self.has_error:
            return on_error(self.error) if on_error else None
        return on_data(self.data) if on_data else None

    def unwrap(self) -> T:
        """Return the data value or raise the held error"""
        if self.has_error:
            raise self.error
        return self.data

    @classmethod
    async def capture(
        cls, awaitable: Awaitable[T], *error_types: Type[Exception]
    ) -> "Result[Exception, T]":
        """Await and convert the listed exception types into an error Result.

        Exceptions that are not listed propagate unchanged.
        """
        catch: Tuple[Type[Exception], ...] = error_types or (Exception,)
        try:
            return cls(data=await awaitable)
        except catch as e:
            return cls(error=e)
