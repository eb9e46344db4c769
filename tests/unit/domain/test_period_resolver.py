# tests/unit/domain/test_period_resolver.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from strata_api.domain.entities.value_period import PeriodRange
from strata_api.domain.enums.period_granularity import PeriodGranularity
from strata_api.domain.services.period_resolver import as_utc, resolve_period, same_period


def _end_of(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 23, 59, 59, 999000, tzinfo=UTC)


def test_monthly_period_spans_calendar_month() -> None:
    period = resolve_period(datetime(2025, 3, 15, 12, tzinfo=UTC), PeriodGranularity.MONTHLY)

    assert period.start == datetime(2025, 3, 1, tzinfo=UTC)
    assert period.end == _end_of(2025, 3, 31)


def test_monthly_period_in_december_rolls_into_next_year() -> None:
    period = resolve_period(datetime(2025, 12, 31, 23, 0, tzinfo=UTC), PeriodGranularity.MONTHLY)

    assert period.start == datetime(2025, 12, 1, tzinfo=UTC)
    assert period.end == _end_of(2025, 12, 31)


def test_monthly_period_handles_leap_february() -> None:
    period = resolve_period(datetime(2024, 2, 10, tzinfo=UTC), PeriodGranularity.MONTHLY)

    assert period.end == _end_of(2024, 2, 29)


@pytest.mark.parametrize(
    ("month", "first_month", "last_month", "last_day"),
    [(1, 1, 3, 31), (5, 4, 6, 30), (9, 7, 9, 30), (11, 10, 12, 31)],
)
def test_quarterly_period_aligns_to_calendar_quarters(
    month: int, first_month: int, last_month: int, last_day: int
) -> None:
    period = resolve_period(datetime(2025, month, 2, tzinfo=UTC), PeriodGranularity.QUARTERLY)

    assert period.start == datetime(2025, first_month, 1, tzinfo=UTC)
    assert period.end == _end_of(2025, last_month, last_day)


def test_yearly_period_spans_calendar_year() -> None:
    period = resolve_period(datetime(2025, 7, 4, tzinfo=UTC), PeriodGranularity.YEARLY)

    assert period.start == datetime(2025, 1, 1, tzinfo=UTC)
    assert period.end == _end_of(2025, 12, 31)


def test_period_is_resolved_in_utc() -> None:
    plus_two = timezone(timedelta(hours=2))
    # 01:00 on April 1st at UTC+2 is still March 31st in UTC.
    period = resolve_period(datetime(2025, 4, 1, 1, 0, tzinfo=plus_two), PeriodGranularity.MONTHLY)

    assert period.start == datetime(2025, 3, 1, tzinfo=UTC)


def test_naive_datetimes_are_treated_as_utc() -> None:
    assert as_utc(datetime(2025, 3, 1)) == datetime(2025, 3, 1, tzinfo=UTC)
    period = resolve_period(datetime(2025, 3, 31, 23, 59), PeriodGranularity.MONTHLY)
    assert period.start == datetime(2025, 3, 1, tzinfo=UTC)


def test_none_granularity_has_no_period() -> None:
    with pytest.raises(ValueError):
        resolve_period(datetime(2025, 3, 1, tzinfo=UTC), PeriodGranularity.NONE)


def test_every_instant_of_a_period_resolves_to_the_same_range() -> None:
    period = resolve_period(datetime(2025, 3, 15, tzinfo=UTC), PeriodGranularity.MONTHLY)

    assert resolve_period(period.start, PeriodGranularity.MONTHLY) == period
    assert resolve_period(period.end, PeriodGranularity.MONTHLY) == period
    next_instant = period.end + timedelta(milliseconds=1)
    assert resolve_period(next_instant, PeriodGranularity.MONTHLY) != period


def test_same_period_compares_bounds_in_utc() -> None:
    utc = PeriodRange(
        start=datetime(2025, 3, 1, tzinfo=UTC),
        end=_end_of(2025, 3, 31),
    )
    shifted = PeriodRange(
        start=utc.start.astimezone(timezone(timedelta(hours=-5))),
        end=utc.end.astimezone(timezone(timedelta(hours=-5))),
    )
    quarter = resolve_period(utc.start, PeriodGranularity.QUARTERLY)

    assert same_period(utc, shifted)
    assert not same_period(utc, quarter)


def test_period_range_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError):
        PeriodRange(start=datetime(2025, 3, 2, tzinfo=UTC), end=datetime(2025, 3, 1, tzinfo=UTC))
