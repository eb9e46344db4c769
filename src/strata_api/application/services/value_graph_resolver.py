# src/strata_api/application/services/value_graph_resolver.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Value graph resolver (application layer).

Purpose:
    Resolve the current numeric value of entities referenced through
    ``get("KEY")``, recursing through their own formulas, with a memo cache
    and a "currently resolving" set scoped to one resolver instance.

Layer:
    application/services

Resolution of one key:
    1. Empty key reads 0.
    2. Cached keys return the cached value.
    3. A key already being resolved (cycle) reads 0 and is not cached.
    4. Unknown keys and entities without a period cadence read 0 (cached).
    5. The fallback is the latest stored period's final, calculated or
       actual value (first non-null), else 0.
    6. Entities without a formula return the fallback.
    7. Otherwise dependencies resolve first, variables are assembled from
       static definitions and the latest period's inputs, and the formula
       is evaluated with ``get`` bound to the resolved dependencies.
    8. Evaluation failures return the fallback.
    9. The key is always released from the resolving set.

Notes:
    - One resolver per top-level computation. Instances are never shared
      across requests.
    - Fallbacks never raise. They are logged at WARNING and counted in
      ``strata_dependency_fallbacks_total``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from uuid import UUID

from strata_api.domain.entities.strategic_entity import StrategicEntity, normalize_entity_key
from strata_api.domain.entities.value_period import ValuePeriod
from strata_api.domain.interfaces.repositories.entities_repository import EntitiesRepository
from strata_api.domain.interfaces.repositories.value_periods_repository import (
    ValuePeriodsRepository,
)
from strata_api.domain.services.formula import (
    FormulaOutcome,
    KeyLookup,
    detect_dialect,
    evaluate_formula,
    extract_keys,
)
from strata_api.infrastructure.observability.metrics import (
    get_dependency_fallbacks_total,
    get_formula_evaluations_total,
)

logger = logging.getLogger(__name__)


def evaluate_with_metrics(
    formula: str,
    variables: Mapping[str, float],
    lookup: KeyLookup | None = None,
) -> FormulaOutcome:
    """Evaluate ``formula`` and count the outcome by dialect."""
    outcome = evaluate_formula(formula, variables, lookup)
    label = "ok" if outcome.ok else (outcome.error.value if outcome.error else "error")
    get_formula_evaluations_total().labels(
        dialect=detect_dialect(formula).value,
        outcome=label,
    ).inc()
    return outcome


def stored_variable_values(
    entity: StrategicEntity,
    latest: ValuePeriod | None,
) -> dict[str, float]:
    """Return the entity's variables keyed by code, as last stored.

    Static variables read their definition value; the others read the
    latest period's inputs. Anything absent reads 0.
    """
    stored = latest.variable_values if latest is not None else {}
    values: dict[str, float] = {}
    for variable in entity.variables:
        if variable.is_static:
            values[variable.code] = float(variable.static_value or 0.0)
        else:
            values[variable.code] = float(stored.get(variable.id, 0.0))
    return values


class ValueGraphResolver:
    """Request-scoped resolver for cross-entity ``get()`` references."""

    def __init__(
        self,
        *,
        org_id: UUID,
        entities: EntitiesRepository,
        periods: ValuePeriodsRepository,
    ) -> None:
        """Bind the resolver to one organization and its repositories.

        Args:
            org_id: Organization every key is resolved in.
            entities: Entity lookup port.
            periods: Period value port.
        """
        self._org_id = org_id
        self._entities = entities
        self._periods = periods
        self._cache: dict[str, float] = {}
        self._resolving: set[str] = set()

    @property
    def cached(self) -> Mapping[str, float]:
        """Return a read-only view of values resolved so far."""
        return dict(self._cache)

    async def resolve(self, key: str) -> float:
        """Return the current value of the entity with ``key``."""
        normalized = normalize_entity_key(key)
        if not normalized:
            return 0.0
        if normalized in self._cache:
            return self._cache[normalized]
        if normalized in self._resolving:
            self._fallback("cycle", normalized)
            return 0.0

        self._resolving.add(normalized)
        try:
            return await self._resolve_marked(normalized)
        finally:
            self._resolving.discard(normalized)

    async def resolve_many(self, keys: Iterable[str]) -> dict[str, float]:
        """Resolve each key in ``keys`` (sorted for deterministic traversal)."""
        return {key: await self.resolve(key) for key in sorted(keys)}

    async def evaluate(
        self,
        entity: StrategicEntity,
        variables: Mapping[str, float],
    ) -> FormulaOutcome:
        """Evaluate the primary entity's formula against ``variables``.

        The entity's own key is held in the resolving set while its
        dependencies resolve, so a self-reference reads 0.

        Args:
            entity: Entity being saved; must carry a formula.
            variables: Variable values keyed by code for the period being saved.

        Returns:
            FormulaOutcome of the primary formula. Failures are returned, not
            absorbed.
        """
        formula = entity.formula or ""
        own_key = entity.key
        if own_key:
            self._resolving.add(own_key)
        try:
            resolved = await self.resolve_many(extract_keys(formula))
        finally:
            if own_key:
                self._resolving.discard(own_key)
        return evaluate_with_metrics(formula, variables, lookup_from(resolved))

    async def _resolve_marked(self, key: str) -> float:
        entity = await self._entities.get_by_key(self._org_id, key)
        if entity is None:
            self._fallback("missing", key)
            self._cache[key] = 0.0
            return 0.0
        if not entity.is_periodic:
            self._fallback("not_periodic", key)
            self._cache[key] = 0.0
            return 0.0

        latest = await self._periods.get_latest(entity.id)
        stored = latest.stored_value if latest is not None else 0.0
        if not entity.has_formula:
            self._cache[key] = stored
            return stored

        formula = entity.formula or ""
        resolved = await self.resolve_many(extract_keys(formula))
        outcome = evaluate_with_metrics(
            formula,
            stored_variable_values(entity, latest),
            lookup_from(resolved),
        )
        if outcome.ok and outcome.value is not None:
            self._cache[key] = outcome.value
            return outcome.value

        self._fallback("formula_error", key, error=outcome.error)
        self._cache[key] = stored
        return stored

    def _fallback(self, reason: str, key: str, *, error: object | None = None) -> None:
        get_dependency_fallbacks_total().labels(reason=reason).inc()
        logger.warning(
            "values.resolve.fallback",
            extra={
                "org_id": str(self._org_id),
                "key": key,
                "reason": reason,
                "error": getattr(error, "value", error),
            },
        )


def lookup_from(resolved: Mapping[str, float]) -> KeyLookup:
    """Return a ``get`` callback reading normalized keys from ``resolved`` (else 0)."""

    def lookup(raw_key: str) -> float:
        return resolved.get(normalize_entity_key(raw_key), 0.0)

    return lookup


__all__ = [
    "ValueGraphResolver",
    "evaluate_with_metrics",
    "lookup_from",
    "stored_variable_values",
]
