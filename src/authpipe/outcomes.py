"""Classified results of a single request attempt.

Every failure is returned as a value. Callers branch with ``isinstance`` or
``match``; ``outcome.ok`` is True only for :class:`Success`.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    status: int = 200
    ok = True

    def describe(self) -> str:
        return "OK"


@dataclass(frozen=True)
class Unauthorized:
    # True only when the refresh endpoint definitively rejected the refresh token
    session_expired: bool = False
    ok = False

    def describe(self) -> str:
        return "Authentication failed"


@dataclass(frozen=True)
class RateLimited:
    message: str
    retry_after: float | None = None
    ok = False

    def describe(self) -> str:
        if self.retry_after is not None:
            return f"{self.message}. Please wait {self.retry_after:g} seconds."
        return self.message


@dataclass(frozen=True)
class ClientError:
    status: int
    message: str
    ok = False

    def describe(self) -> str:
        return f"{self.message} (Code: {self.status})"


@dataclass(frozen=True)
class ServerError:
    status: int
    message: str
    ok = False

    def describe(self) -> str:
        return f"{self.message} (Code: {self.status})"


@dataclass(frozen=True)
class TransportFailure:
    cause: BaseException
    ok = False

    def describe(self) -> str:
        return f"Connection error: {self.cause}"


@dataclass(frozen=True)
class Malformed:
    cause: Any
    status: int | None = None
    ok = False

    @property
    def retryable(self) -> bool:
        # an unparseable success body will not parse on a second try either
        return self.status is None or not 200 <= self.status <= 299

    def describe(self) -> str:
        return "Invalid response from server"


Outcome = Union[
    Success,
    Unauthorized,
    RateLimited,
    ClientError,
    ServerError,
    TransportFailure,
    Malformed,
]
