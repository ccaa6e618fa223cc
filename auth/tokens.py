"""
auth/tokens.py -- Opaque single-use token issuance and consumption.

Security design decisions:
  Values: 64 characters drawn with secrets.choice from a 65-symbol alphabet
       (~385 bits of entropy). The alphabet never contains the "|" separator,
       so a serialized token always splits back into exactly two parts.

  Single use: consume() deletes the record on success. Every authenticated
       response therefore has to hand the client a fresh token (see
       api/responses.py).

  Comparison: the stored and presented values are compared with
       hmac.compare_digest inside TokenStore.redeem() so response timing does
       not leak how many leading characters matched.

  Expected failures (missing, malformed, unknown, expired, wrong value) come
       back as ConsumeResult values. Only issue() raises, and only when the
       store itself fails (TokenStoreError).

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.errors import ConsumeResult, TokenErrorKind, TokenStoreError
from auth.models import RedeemStatus, Token, TokenRecord
from auth.store import TokenStore
from core.config import TOKEN_SEPARATOR, get_settings

logger = logging.getLogger("tokengate.auth")

TOKEN_VALUE_LENGTH = 64

_ALPHABET = string.ascii_letters + string.digits + "-_."

_REDEEM_ERRORS: dict[RedeemStatus, TokenErrorKind] = {
    RedeemStatus.MISSING: TokenErrorKind.RESOURCE_NOT_FOUND,
    RedeemStatus.EXPIRED: TokenErrorKind.EXPIRED,
    RedeemStatus.MISMATCH: TokenErrorKind.INVALID_VALUE,
}


def generate_token_value(length: int = TOKEN_VALUE_LENGTH) -> str:
    """Return a cryptographically random string of exactly `length` characters."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and consumes tokens against an injected TokenStore.

    Usage:
        service = TokenService(TokenStore())
        raw = service.issue("42")              # "<64 chars>|42"
        result = service.consume(raw)          # ConsumeResult(resource_id="42")
        service.consume(raw).error             # TokenErrorKind.RESOURCE_NOT_FOUND

    Args:
        store:          Shared TokenStore; its lifecycle belongs to the caller.
        expire_seconds: Token TTL. If 0 (default), uses
                        Settings.token_expire_seconds.
        generator:      Random value factory, replaceable in tests.
        clock:          Returns the current timezone-aware UTC time.
    """

    def __init__(
        self,
        store: TokenStore,
        expire_seconds: int = 0,
        generator: Callable[[], str] = generate_token_value,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.expire_seconds = expire_seconds if expire_seconds > 0 else get_settings().token_expire_seconds
        self._generator = generator
        self._clock = clock

    def issue(self, resource_id: str) -> str:
        """Create a new token for resource_id, superseding any previous one.

        Raises ValueError for an empty resource_id or one containing the
        separator, and TokenStoreError if the record cannot be written.
        """
        if not resource_id:
            raise ValueError("resource_id must not be empty")
        if TOKEN_SEPARATOR in resource_id:
            raise ValueError(f"resource_id must not contain '{TOKEN_SEPARATOR}'")
        token = Token(resource_id=resource_id, value=self._generator())
        expiration = self._clock() + timedelta(seconds=self.expire_seconds)
        self.store.replace(TokenRecord(resource_id=resource_id, value=token.value, expiration=expiration))
        logger.debug("Issued token for resource %s (expires %s)", resource_id, expiration.isoformat())
        return token.serialize()

    def consume(self, raw: str | None) -> ConsumeResult:
        """Validate raw and, if it is good, delete it and return its resource_id."""
        if not raw:
            return ConsumeResult.failure(TokenErrorKind.NOT_PROVIDED)
        token = Token.parse(raw)
        if token is None:
            return ConsumeResult.failure(TokenErrorKind.INVALID_FORMAT)
        try:
            status = self.store.redeem(token.resource_id, token.value, self._clock())
        except TokenStoreError as exc:
            return ConsumeResult.failure(TokenErrorKind.DATABASE_ERROR, cause=exc)
        if status is RedeemStatus.REDEEMED:
            return ConsumeResult.success(token.resource_id)
        error = _REDEEM_ERRORS[status]
        logger.info("Token rejected for resource %s: %s", token.resource_id, error.value)
        return ConsumeResult.failure(error)

    def revoke(self, resource_id: str) -> bool:
        """Delete the live token for resource_id, if any."""
        return self.store.delete(resource_id)

    def purge_expired(self) -> int:
        """Remove all expired records. Returns the number removed."""
        removed = self.store.purge_expired(self._clock())
        if removed:
            logger.info("Purged %d expired token(s)", removed)
        return removed
