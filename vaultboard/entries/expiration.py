"""
Expiration urgency for knowledge entries.

Days are counted with a ceiling, so anything expiring later today is still
"0 days" away and critical, and anything in the past is negative and expired.

  expired   days < 0
  critical  0 <= days <= 7
  warning   8 <= days <= 14
  notice    days > 14, only within the caller's horizon

The interactive dashboard looks 30 days ahead; the scheduled sweep only 14.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from enum import Enum

INTERACTIVE_HORIZON_DAYS = 30
SWEEP_HORIZON_DAYS = 14

CRITICAL_DAYS = 7
WARNING_DAYS = 14

_DAY_SECONDS = timedelta(days=1).total_seconds()


class ExpirationStatus(str, Enum):
    EXPIRED = "expired"
    CRITICAL = "critical"
    WARNING = "warning"
    NOTICE = "notice"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def days_until(expiration: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``expiration``, rounded up."""
    delta = _aware(expiration) - _aware(now)
    return math.ceil(delta.total_seconds() / _DAY_SECONDS)


def classify_expiration(
    expiration: datetime | None,
    now: datetime,
    horizon_days: int = INTERACTIVE_HORIZON_DAYS,
) -> ExpirationStatus | None:
    """Urgency of an expiration date, or None when it is absent or beyond the horizon."""
    if expiration is None:
        return None
    days = days_until(expiration, now)
    if days < 0:
        return ExpirationStatus.EXPIRED
    if days > horizon_days:
        return None
    if days <= CRITICAL_DAYS:
        return ExpirationStatus.CRITICAL
    if days <= WARNING_DAYS:
        return ExpirationStatus.WARNING
    return ExpirationStatus.NOTICE


def horizon_cutoff(now: datetime, horizon_days: int) -> datetime:
    """Latest expiration date that falls inside ``horizon_days``."""
    return _aware(now) + timedelta(days=horizon_days)


def bucket_entries(entries: Iterable, now: datetime, horizon_days: int) -> dict[str, list]:
    """Group entries by expiration status. Entries outside the horizon are left out."""
    buckets: dict[str, list] = {status.value: [] for status in ExpirationStatus}
    for entry in entries:
        status = classify_expiration(entry.expiration_date, now, horizon_days)
        if status is not None:
            buckets[status.value].append(entry)
    return buckets
