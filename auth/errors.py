"""
auth/errors.py -- Token failure taxonomy.

Validation failures (missing, malformed, unknown, expired, wrong value) are
routine outcomes of checking a bearer token, so consume() reports them as a
ConsumeResult value instead of raising. Only a broken store is exceptional:
TokenStoreError wraps the underlying SQLAlchemy error.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenErrorKind(str, Enum):
    NOT_PROVIDED = "token_not_provided"
    INVALID_FORMAT = "token_invalid_format"
    RESOURCE_NOT_FOUND = "token_resource_not_found"
    EXPIRED = "token_expired"
    DATABASE_ERROR = "token_database_error"
    INVALID_VALUE = "token_invalid_value"

    @property
    def code(self) -> int:
        """Numeric error code, stable across releases (900-905)."""
        return _CODES[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_CODES: dict[TokenErrorKind, int] = {
    TokenErrorKind.NOT_PROVIDED: 900,
    TokenErrorKind.INVALID_FORMAT: 901,
    TokenErrorKind.RESOURCE_NOT_FOUND: 902,
    TokenErrorKind.EXPIRED: 903,
    TokenErrorKind.DATABASE_ERROR: 904,
    TokenErrorKind.INVALID_VALUE: 905,
}

_MESSAGES: dict[TokenErrorKind, str] = {
    TokenErrorKind.NOT_PROVIDED: "Token has not been provided",
    TokenErrorKind.INVALID_FORMAT: "Provided token has not the proper format",
    TokenErrorKind.RESOURCE_NOT_FOUND: "Token for requested resource not found",
    TokenErrorKind.EXPIRED: "Token expired and thus cannot be used",
    TokenErrorKind.DATABASE_ERROR: "Database error occurred",
    TokenErrorKind.INVALID_VALUE: "Token value does not match",
}


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of TokenService.consume().

    Exactly one of resource_id / error is set. cause carries the storage
    exception for DATABASE_ERROR so callers can log it.
    """

    resource_id: str | None = None
    error: TokenErrorKind | None = None
    cause: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, resource_id: str) -> ConsumeResult:
        return cls(resource_id=resource_id)

    @classmethod
    def failure(cls, error: TokenErrorKind, cause: Exception | None = None) -> ConsumeResult:
        return cls(error=error, cause=cause)


class TokenStoreError(Exception):
    """The token store could not complete an operation.

    The original SQLAlchemy exception is chained as __cause__.
    """
