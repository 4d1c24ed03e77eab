"""Tagged results returned across every collaborator boundary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classification of a failed operation."""

    HTTP = "http"
    UNAUTHORIZED = "unauthorized"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    PARSE = "parse"
    PROVIDER = "provider"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Cancelled:
    reason: str = "cancelled"  # "cancelled" or "timeout"

    @property
    def timed_out(self) -> bool:
        return self.reason == "timeout"


@dataclass(frozen=True)
class Failure:
    """A classified failure with an HTTP status or provider error code."""

    kind: FailureKind
    message: str
    code: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_unauthorized(self) -> bool:
        return self.kind == FailureKind.UNAUTHORIZED or self.code == 401

    @classmethod
    def from_exception(cls, exc: BaseException, kind: FailureKind = FailureKind.UNEXPECTED) -> "Failure":
        return cls(
            kind=kind,
            message=f"{type(exc).__name__}: {exc}",
            code=-1,
            details={"exception": type(exc).__name__},
        )


Result = Union[Ok[T], Cancelled, Failure]
