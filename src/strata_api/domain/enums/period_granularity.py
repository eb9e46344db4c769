# src/strata_api/domain/enums/period_granularity.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Period granularity enum.

Purpose:
    Classify how often an entity carries time-series values.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class PeriodGranularity(str, Enum):
    """Cadence of an entity's periodic values.

    ``NONE`` marks entities without time-series values; they are evaluated on
    demand from their dependencies and never persist a period row.
    """

    NONE = "NONE"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"

    @property
    def is_periodic(self) -> bool:
        """Return True when values are stored per canonical period."""
        return self is not PeriodGranularity.NONE


__all__ = ["PeriodGranularity"]
