"""Tests for retraction window arithmetic."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from realty_escrow.domain.retraction import RetractionWindow, compute_expiry

SIGNED_AT = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class TestComputeExpiry:
    def test_forty_eight_hours(self) -> None:
        assert compute_expiry(SIGNED_AT, 48) == SIGNED_AT + timedelta(hours=48)

    def test_naive_treated_as_utc(self) -> None:
        naive = SIGNED_AT.replace(tzinfo=None)
        assert compute_expiry(naive, 48) == SIGNED_AT + timedelta(hours=48)


class TestWindow:
    window = RetractionWindow(compute_expiry(SIGNED_AT, 48))

    def test_open_just_before_expiry(self) -> None:
        now = SIGNED_AT + timedelta(hours=48) - timedelta(seconds=1)
        assert self.window.is_open(now)
        assert self.window.remaining(now) == timedelta(seconds=1)

    def test_closed_at_exact_expiry(self) -> None:
        now = SIGNED_AT + timedelta(hours=48)
        assert not self.window.is_open(now)
        assert self.window.remaining(now) == timedelta(0)

    def test_remaining_never_negative(self) -> None:
        assert self.window.remaining(SIGNED_AT + timedelta(days=10)) == timedelta(0)

    def test_unsigned_contract_has_no_window(self) -> None:
        window = RetractionWindow(None)
        assert not window.is_open(SIGNED_AT)
        assert window.remaining(SIGNED_AT) == timedelta(0)

    def test_reminder_due_only_near_the_end(self) -> None:
        threshold = timedelta(hours=6)
        assert not self.window.reminder_due(SIGNED_AT + timedelta(hours=10), threshold)
        assert self.window.reminder_due(SIGNED_AT + timedelta(hours=43), threshold)
        assert not self.window.reminder_due(SIGNED_AT + timedelta(hours=49), threshold)
