"""
auth/models.py -- Domain dataclasses for token authentication.

Pattern: Data class. Token is the wire form handed to clients; TokenRecord is
the persisted row. Stores and services do the work.

Layer rule: may import from core/ only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from core.config import TOKEN_SEPARATOR


@dataclass(frozen=True)
class Token:
    """An opaque bearer token: a random value bound to one resource identifier.

    Serialized as "value|resource_id". The format has no structure a client
    can decode; validity is decided by the server-side lookup only.
    """

    resource_id: str
    value: str

    def serialize(self) -> str:
        return f"{self.value}{TOKEN_SEPARATOR}{self.resource_id}"

    @classmethod
    def parse(cls, raw: str) -> Token | None:
        """Split a raw token string. Returns None unless there are exactly two parts."""
        parts = raw.split(TOKEN_SEPARATOR)
        if len(parts) != 2:
            return None
        value, resource_id = parts
        return cls(resource_id=resource_id, value=value)


@dataclass
class TokenRecord:
    """A stored token. At most one exists per resource_id."""

    resource_id: str
    value: str
    expiration: datetime  # timezone-aware UTC
    id: int | None = None


class RedeemStatus(Enum):
    """Outcome of TokenStore.redeem() -- what the locked lookup found."""

    MISSING = "missing"
    EXPIRED = "expired"  # record was deleted
    MISMATCH = "mismatch"  # record kept
    REDEEMED = "redeemed"  # record was deleted
