"""Canonical JSON document renderer.

Stands in for the PDF renderer: the bytes are a deterministic serialization
of the contract terms (sorted keys, no whitespace, ISO dates), so the same
terms always hash to the same document hash.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


def _default(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


class CanonicalJsonRenderer:
    def render(self, snapshot: Mapping[str, Any]) -> bytes:
        return json.dumps(
            dict(snapshot),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=_default,
        ).encode("utf-8")
