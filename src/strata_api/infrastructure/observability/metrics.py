# src/strata_api/infrastructure/observability/metrics.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware, hot-reload safe).

Collectors are exposed through accessor functions bound to the **current**
``prometheus_client.REGISTRY``:

    * Safe under hot reload and tests that swap the default registry.
    * No duplicate-registration errors.
    * Cache automatically resets when the active registry changes.

Groups:
    * DB operation latency/errors (repositories).
    * Formula evaluations by dialect/outcome.
    * Cascading recalculations and guard stops.
    * Dependency fallbacks taken by the value graph resolver.

Example:
    get_formula_evaluations_total().labels(dialect="EXTENDED", outcome="ok").inc()
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Common histogram buckets (seconds)
_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
    10.000,
)

# Cache keyed by metric name within the currently-active registry.
_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


# ---------------------------------------------------------------------------
# Registry-handling primitives


def _ensure_registry() -> None:
    """Reset caches if the active registry changed.

    This must be called before any metric lookup/creation to avoid mixing
    collectors across registries (common in tests).
    """
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing(name: str) -> object | None:
    """Return a collector already registered under ``name``, if any."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            return mapping.get(name)
    return None


# ---------------------------------------------------------------------------
# Get-or-create helpers


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    buckets: tuple[float, ...] = _BUCKETS,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity.

    Strategy:
        1. Return from module cache if present for the active registry.
        2. If the registry already has a collector by this name, reuse it.
        3. Otherwise, register a new collector on the active registry.
        4. If concurrent registration triggers a duplication error, retry step 2.
    """
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing(name)
        if isinstance(existing, Histogram):
            _hist_cache[name] = existing
            return existing

        try:
            hist = Histogram(name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name)
                if isinstance(again, Histogram):
                    _hist_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = hist
        return hist


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached

        # Counters register under their base name; the registry also maps
        # the ``_total`` series name.
        existing = _lookup_existing(name)
        if isinstance(existing, Counter):
            _counter_cache[name] = existing
            return existing

        try:
            counter = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name)
                if isinstance(again, Counter):
                    _counter_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = counter
        return counter


# ---------------------------------------------------------------------------
# DB metrics
# ---------------------------------------------------------------------------


def get_db_operation_duration_seconds() -> Histogram:
    """Return histogram for DB operation latency.

    Labels:
        operation: Logical operation name (e.g. ``upsert_value_period``).
        model: Logical model/table name (e.g. ``entity_value_periods``).
        outcome: ``success`` or ``error``.
    """
    return _get_or_create_hist(
        name="db_operation_duration_seconds",
        help_text="Latency (seconds) of database operations.",
        labelnames=("operation", "model", "outcome"),
    )


def get_db_errors_total() -> Counter:
    """Return counter for DB errors.

    Labels:
        operation: Logical operation name.
        model: Logical model/table name.
        reason: Error class or short reason.
    """
    return _get_or_create_counter(
        name="db_errors_total",
        help_text="Total database errors by operation/model.",
        labelnames=("operation", "model", "reason"),
    )


# ---------------------------------------------------------------------------
# Value engine metrics
# ---------------------------------------------------------------------------


def get_formula_evaluations_total() -> Counter:
    """Return counter for formula evaluations.

    Labels:
        dialect: ``ARITHMETIC`` or ``EXTENDED``.
        outcome: ``ok`` or the failure error code.
    """
    return _get_or_create_counter(
        name="strata_formula_evaluations_total",
        help_text="Formula evaluations by dialect and outcome.",
        labelnames=("dialect", "outcome"),
    )


def get_dependency_fallbacks_total() -> Counter:
    """Return counter for dependency resolutions that fell back.

    Labels:
        reason: ``cycle``, ``missing``, ``not_periodic`` or ``formula_error``.
    """
    return _get_or_create_counter(
        name="strata_dependency_fallbacks_total",
        help_text="Dependency values replaced by zero or the last stored value.",
        labelnames=("reason",),
    )


def get_cascade_recalculations_total() -> Counter:
    """Return counter for dependent recalculations triggered by a cascade.

    Labels:
        outcome: ``recalculated``, ``skipped`` or ``error``.
    """
    return _get_or_create_counter(
        name="strata_cascade_recalculations_total",
        help_text="Dependent recalculations performed by cascades.",
        labelnames=("outcome",),
    )


def get_cascade_guard_stops_total() -> Counter:
    """Return counter for cascades stopped by a guard.

    Labels:
        reason: ``max_depth`` or ``cycle``.
    """
    return _get_or_create_counter(
        name="strata_cascade_guard_stops_total",
        help_text="Cascading recalculations stopped by the depth or cycle guard.",
        labelnames=("reason",),
    )


def get_value_operation_duration_seconds() -> Histogram:
    """Return histogram for value operation latency.

    Labels:
        operation: ``save_draft``, ``submit``, ``approve``, ``request_changes`` ...
        outcome: ``success`` or the error code.
    """
    return _get_or_create_hist(
        name="strata_value_operation_duration_seconds",
        help_text="Latency (seconds) of value operations including cascades.",
        labelnames=("operation", "outcome"),
    )
