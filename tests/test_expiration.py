"""Tests for vaultboard.entries.expiration."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from vaultboard.entries.expiration import (
    INTERACTIVE_HORIZON_DAYS,
    SWEEP_HORIZON_DAYS,
    ExpirationStatus,
    bucket_entries,
    classify_expiration,
    days_until,
)

NOW = datetime(2025, 1, 1, tzinfo=UTC)


class TestDaysUntil:
    def test_whole_days(self):
        assert days_until(datetime(2025, 1, 5, tzinfo=UTC), NOW) == 4

    def test_partial_day_rounds_up(self):
        assert days_until(NOW + timedelta(hours=1), NOW) == 1

    def test_past_is_negative(self):
        assert days_until(datetime(2024, 12, 20, tzinfo=UTC), NOW) == -12

    def test_naive_treated_as_utc(self):
        assert days_until(datetime(2025, 1, 5), NOW) == 4


class TestClassify:
    def test_four_days_is_critical(self):
        assert classify_expiration(datetime(2025, 1, 5, tzinfo=UTC), NOW) is ExpirationStatus.CRITICAL

    def test_past_is_expired(self):
        assert classify_expiration(datetime(2024, 12, 20, tzinfo=UTC), NOW) is ExpirationStatus.EXPIRED

    @pytest.mark.parametrize(
        "days,expected",
        [
            (0, ExpirationStatus.CRITICAL),
            (7, ExpirationStatus.CRITICAL),
            (8, ExpirationStatus.WARNING),
            (14, ExpirationStatus.WARNING),
            (15, ExpirationStatus.NOTICE),
            (30, ExpirationStatus.NOTICE),
        ],
    )
    def test_boundaries(self, days, expected):
        assert classify_expiration(NOW + timedelta(days=days), NOW) is expected

    def test_beyond_horizon_not_flagged(self):
        assert classify_expiration(NOW + timedelta(days=31), NOW) is None

    def test_sweep_horizon_is_narrower(self):
        twenty = NOW + timedelta(days=20)
        assert classify_expiration(twenty, NOW, INTERACTIVE_HORIZON_DAYS) is ExpirationStatus.NOTICE
        assert classify_expiration(twenty, NOW, SWEEP_HORIZON_DAYS) is None

    def test_expired_regardless_of_horizon(self):
        long_ago = NOW - timedelta(days=400)
        assert classify_expiration(long_ago, NOW, SWEEP_HORIZON_DAYS) is ExpirationStatus.EXPIRED

    def test_no_expiration(self):
        assert classify_expiration(None, NOW) is None


class TestBucketEntries:
    def test_groups_by_status(self):
        entries = [
            SimpleNamespace(title="old", expiration_date=NOW - timedelta(days=2)),
            SimpleNamespace(title="soon", expiration_date=NOW + timedelta(days=3)),
            SimpleNamespace(title="later", expiration_date=NOW + timedelta(days=10)),
            SimpleNamespace(title="far", expiration_date=NOW + timedelta(days=90)),
            SimpleNamespace(title="never", expiration_date=None),
        ]
        buckets = bucket_entries(entries, NOW, INTERACTIVE_HORIZON_DAYS)
        assert [e.title for e in buckets["expired"]] == ["old"]
        assert [e.title for e in buckets["critical"]] == ["soon"]
        assert [e.title for e in buckets["warning"]] == ["later"]
        assert buckets["notice"] == []

    def test_all_buckets_present_when_empty(self):
        assert bucket_entries([], NOW, 30) == {
            "expired": [],
            "critical": [],
            "warning": [],
            "notice": [],
        }
