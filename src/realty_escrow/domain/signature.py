"""Signature hashing.

A signature hash binds a party to one exact document snapshot at one instant:

    sha256(contract_id | reference | party_id | role | signed_at | document_hash)

The seal hash, computed when the second signature lands, chains both
signature hashes (ordered by role) onto the document hash.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable
    from datetime import datetime

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def document_hash(document: bytes) -> str:
    return hashlib.sha256(document).hexdigest()


def signature_hash(
    contract_id: uuid.UUID | str,
    reference: str,
    party_id: str,
    role: str,
    signed_at: datetime,
    doc_hash: str,
) -> str:
    payload = "|".join(
        [str(contract_id), reference, party_id, role, signed_at.isoformat(), doc_hash]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def seal_hash(contract_id: uuid.UUID | str, doc_hash: str, signature_hashes: Iterable[str]) -> str:
    payload = "|".join([str(contract_id), doc_hash, *signature_hashes])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def signature_code() -> str:
    """Human-quotable signature identifier, e.g. ``SIG-7QK2M9XA0B1C``."""
    return "SIG-" + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(12))


def hashes_equal(expected: str, actual: str) -> bool:
    return hmac.compare_digest(expected, actual)
