"""One-time code primitives.

Codes are drawn from `secrets`, stored only as SHA-256 hex digests and
compared in constant time. A challenge is bound to a purpose string; for
signatures that is ``contract-sign:{contract_id}:{party_id}``.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

SIGNATURE_PURPOSE_PREFIX = "contract-sign"


def signature_purpose(contract_id: uuid.UUID | str, party_id: str) -> str:
    return f"{SIGNATURE_PURPOSE_PREFIX}:{contract_id}:{party_id}"


def generate_code(length: int = 6) -> str:
    """Uniformly random numeric code, zero-padded to `length` digits."""
    if length < 4:
        raise ValueError("OTP codes shorter than 4 digits are not allowed")
    return str(secrets.randbelow(10**length)).zfill(length)


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def code_matches(code: str, code_hash: str) -> bool:
    return hmac.compare_digest(hash_code(code.strip()), code_hash)


@dataclass(frozen=True)
class OtpProof:
    """Evidence that a challenge was consumed by a correct code.

    Copied into the SignatureRecord so the signature can be traced back to the
    exact challenge that authorized it.
    """

    challenge_id: uuid.UUID
    subject_id: str
    purpose: str
    code_hash: str
    verified_at: datetime


@dataclass(frozen=True)
class IssuedChallenge:
    """What the issuer gets back. `code` is the only place the plain code lives."""

    challenge_id: uuid.UUID
    purpose: str
    code: str
    expires_at: datetime
    delivered: bool
