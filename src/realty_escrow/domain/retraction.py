"""Retraction window arithmetic.

Stateless: everything is derived from the contract's `retraction_expires_at`
and the time the caller passes in. The window is half-open, so at the exact
expiry instant it is already closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from realty_escrow.domain.timekeeping import ensure_utc

ZERO = timedelta(0)


def compute_expiry(signed_at: datetime, window_hours: int) -> datetime:
    """Expiry of the window opened by the second signature at `signed_at`."""
    return ensure_utc(signed_at) + timedelta(hours=window_hours)


@dataclass(frozen=True)
class RetractionWindow:
    expires_at: datetime | None

    def is_open(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return ensure_utc(now) < ensure_utc(self.expires_at)

    def remaining(self, now: datetime) -> timedelta:
        """Time left before the window closes, never negative."""
        if self.expires_at is None:
            return ZERO
        return max(ensure_utc(self.expires_at) - ensure_utc(now), ZERO)

    def reminder_due(self, now: datetime, threshold: timedelta) -> bool:
        """True while the window is open but closes within `threshold`."""
        return self.is_open(now) and self.remaining(now) <= threshold
