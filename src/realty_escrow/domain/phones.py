"""Phone number normalization and mobile-money prefix checks.

Numbers arrive in many shapes (``+224 621 00 00 00``, ``00224621000000``,
``621000000``). Everything is reduced to the 9-digit national number before a
prefix is compared or a rail is called.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from realty_escrow.domain.enums import PaymentMethod
from realty_escrow.domain.exceptions import ProviderMismatchError

if TYPE_CHECKING:
    from collections.abc import Iterable

COUNTRY_CODE = "224"
NATIONAL_LENGTH = 9

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """Digits only, international prefix and country code stripped."""
    digits = _NON_DIGITS.sub("", raw or "")
    if digits.startswith("00"):
        digits = digits[2:]
    if digits.startswith(COUNTRY_CODE) and len(digits) == len(COUNTRY_CODE) + NATIONAL_LENGTH:
        digits = digits[len(COUNTRY_CODE):]
    return digits


def international(national: str) -> str:
    """National number with the country code, as the rails expect (MSISDN)."""
    return f"{COUNTRY_CODE}{normalize_phone(national)}"


def check_provider_prefix(raw: str, method: PaymentMethod, prefixes: Iterable[str]) -> str:
    """Return the normalized number if its prefix belongs to `method`.

    Raises:
        ProviderMismatchError: Wrong length, or a prefix the provider does not own.
    """
    phone = normalize_phone(raw)
    if len(phone) != NATIONAL_LENGTH or phone[:2] not in set(prefixes):
        raise ProviderMismatchError(raw, method.value)
    return phone
