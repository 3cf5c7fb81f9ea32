"""
Error taxonomy for Shorten Platform.

Every failure that callers are expected to react to carries one of three
kinds. Storage adapters tag low-level driver errors at their boundary, the
service wraps them with operation context (keeping the kind), and the HTTP
layer maps the kind to a status code without looking at driver internals.

    BAD_INPUT  -> 400
    NOT_UNIQUE -> 409
    NOT_FOUND  -> 404
    <no kind>  -> 500

LLM Prompt Example:
    "Show how a closed enum of error kinds plus exception chaining replaces
    sentinel-value comparisons and string matching across service layers."
"""

import enum
import json
from typing import Any, Dict, Optional


class ErrorKind(enum.Enum):
    BAD_INPUT = "bad input"
    NOT_UNIQUE = "not unique"
    NOT_FOUND = "not found"


class ShortenError(Exception):
    """Base error; `kind` is None for opaque failures."""

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.kind = kind

    @classmethod
    def wrap(cls, context: str, err: BaseException) -> "ShortenError":
        """
        Build a wrapper for `err` that prefixes `context` and keeps its kind.

        Use together with `raise ... from err` so the cause chain stays intact:

            raise ShortenError.wrap("delete shorten 1", err) from err
        """
        return cls(f"{context}: {err}", kind=kind_of(err))


class NotFoundError(ShortenError):
    def __init__(self, message: str = "not found"):
        super().__init__(message, kind=ErrorKind.NOT_FOUND)


class ValidationError(ShortenError):
    """
    Input failed validation.

    Attributes:
        details (Dict[str, Any]): field name -> human-readable reason.
    """

    def __init__(self, details: Dict[str, Any]):
        self.details = dict(details)
        message = json.dumps(
            {"cause": ErrorKind.BAD_INPUT.value, "details": self.details},
            sort_keys=True,
        )
        super().__init__(message, kind=ErrorKind.BAD_INPUT)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return self.details == other.details

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.details)))


def kind_of(err: Optional[BaseException]) -> Optional[ErrorKind]:
    """Return the first error kind found along the `__cause__` chain."""
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        kind = getattr(err, "kind", None)
        if isinstance(kind, ErrorKind):
            return kind
        err = err.__cause__
    return None


def is_kind(err: Optional[BaseException], kind: ErrorKind) -> bool:
    return kind_of(err) is kind
