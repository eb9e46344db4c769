# src/strata_api/domain/services/period_resolver.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Canonical period resolution.

Purpose:
    Map a reference instant and a granularity onto the canonical inclusive
    [start, end] range that keys a ValuePeriod.

Layer:
    domain/services

Notes:
    - Pure and deterministic: no clock access, no logging.
    - All arithmetic happens in UTC. Naive datetimes are read as UTC; aware
      datetimes are converted first, so ranges never differ across zones.
    - The end bound is the last millisecond of the range (``.999``).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from strata_api.domain.entities.value_period import PeriodRange
from strata_api.domain.enums.period_granularity import PeriodGranularity

_LAST_MILLISECOND = timedelta(milliseconds=1)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _first_of_month(year: int, month: int) -> datetime:
    # Months past December roll into the next year.
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=UTC)


def resolve_period(now: datetime, granularity: PeriodGranularity) -> PeriodRange:
    """Return the canonical period containing ``now``.

    Args:
        now: Reference instant.
        granularity: Cadence of the entity; must not be ``NONE``.

    Returns:
        PeriodRange with inclusive UTC bounds.

    Raises:
        ValueError: If ``granularity`` is ``NONE``.
    """
    ref = as_utc(now)

    if granularity is PeriodGranularity.MONTHLY:
        start = _first_of_month(ref.year, ref.month)
        next_start = _first_of_month(ref.year, ref.month + 1)
    elif granularity is PeriodGranularity.QUARTERLY:
        first_month = ((ref.month - 1) // 3) * 3 + 1
        start = _first_of_month(ref.year, first_month)
        next_start = _first_of_month(ref.year, first_month + 3)
    elif granularity is PeriodGranularity.YEARLY:
        start = datetime(ref.year, 1, 1, tzinfo=UTC)
        next_start = datetime(ref.year + 1, 1, 1, tzinfo=UTC)
    else:
        raise ValueError(f"Granularity {granularity.value} has no canonical period")

    return PeriodRange(start=start, end=next_start - _LAST_MILLISECOND)


def same_period(left: PeriodRange, right: PeriodRange) -> bool:
    """Return True when both ranges have identical bounds (compared in UTC)."""
    return as_utc(left.start) == as_utc(right.start) and as_utc(left.end) == as_utc(right.end)


__all__ = ["as_utc", "resolve_period", "same_period"]
