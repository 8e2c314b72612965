"""Structured errors, rate-limit hints and the paint validation outcome.

A paint validation has exactly three outcomes, modeled as a closed union of
frozen dataclasses rather than one object with optional fields::

    match validation:
        case Accepted():
            ...
        case Rejected(error=frame):
            ...
        case RateLimited(hint=hint):
            ...

Callers must branch on :class:`ErrorCode`, never on ``ErrorFrame.message``.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal, Optional, Union

from pyrsistent import pmap
from pyrsistent.typing import PMap


class ErrorCode(StrEnum):
    """Closed set of error codes sent in ``ERROR`` frames."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"


@dataclass(frozen=True)
class ErrorFrame:
    """Error payload.

    Attributes:
        code: Machine readable category.
        message: Human readable text. Not part of the contract.
        meta: Optional structured context, e.g. ``{"field": "color"}``.
    """

    code: ErrorCode
    message: str
    meta: Optional[PMap[str, Any]] = None

    @classmethod
    def of(cls, code: ErrorCode, message: str, **meta: Any) -> "ErrorFrame":
        return cls(code=code, message=message, meta=pmap(meta) if meta else None)


@dataclass(frozen=True)
class RateLimitHint:
    """Backoff guidance for a throttled client.

    Attributes:
        retry_after_ms: Milliseconds to wait before retrying.
        tokens_remaining: Requests available right now, if shared.
        bucket_size: Bucket capacity, if shared.
        refill_per_sec: Tokens earned per second, if shared.
    """

    retry_after_ms: int
    tokens_remaining: Optional[int] = None
    bucket_size: Optional[int] = None
    refill_per_sec: Optional[float] = None

    def __post_init__(self) -> None:
        if isinstance(self.retry_after_ms, bool) or not isinstance(
            self.retry_after_ms, int
        ):
            raise TypeError(f"retry_after_ms must be an int, got {self.retry_after_ms!r}")
        if self.retry_after_ms < 0:
            raise ValueError(f"retry_after_ms must be >= 0, got {self.retry_after_ms}")


@dataclass(frozen=True)
class Accepted:
    kind: Literal["accepted"] = "accepted"

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    error: ErrorFrame
    kind: Literal["error"] = "error"

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class RateLimited:
    hint: RateLimitHint
    kind: Literal["rate_limit"] = "rate_limit"

    @property
    def ok(self) -> bool:
        return False


PaintValidation = Union[Accepted, Rejected, RateLimited]

ACCEPTED = Accepted()


class ProtocolError(ValueError):
    """A wire payload could not be decoded. Carries the frame to send back."""

    def __init__(self, frame: ErrorFrame):
        self.frame = frame
        super().__init__(f"{frame.code}: {frame.message}")

    @classmethod
    def bad_request(cls, message: str, **meta: Any) -> "ProtocolError":
        return cls(ErrorFrame.of(ErrorCode.BAD_REQUEST, message, **meta))


class SequenceGapError(ValueError):
    """Deltas do not form a contiguous seq run from the expected start."""

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(f"Sequence gap: expected seq {expected}, got {got}")
