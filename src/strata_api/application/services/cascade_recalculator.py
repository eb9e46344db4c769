# src/strata_api/application/services/cascade_recalculator.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Cascading recalculation of dependent entities (application layer).

Purpose:
    After an entity's value is saved, recompute every entity whose formula
    references it through ``get("KEY")``, for the same canonical period, and
    recurse into their dependents.

Layer:
    application/services

Algorithm:
    - Depth-first and sequential; a shared ``visited`` set of keys and a
      depth counter bound the walk. Reaching the depth limit or revisiting
      a key stops that branch (logged, counted, never raised).
    - Dependents without a key or without a period cadence are skipped, as
      are dependents whose canonical range anchored at the trigger's start
      differs from the trigger range.
    - Each dependent re-runs the save-draft pipeline with its stored inputs
      for that period (falling back to its latest inputs), under the
      triggering user's approval rank and without the assignment check.
    - A failing dependent is logged and counted; its siblings still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from strata_api.application.services.entity_value_pipeline import (
    EntityValuePipeline,
    PipelineResult,
    ValueInput,
    ValueOperation,
)
from strata_api.application.uow import UnitOfWorkFactory, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.entities.strategic_entity import StrategicEntity, normalize_entity_key
from strata_api.domain.entities.value_period import PeriodRange
from strata_api.domain.services.formula import depends_on
from strata_api.domain.services.period_resolver import resolve_period, same_period
from strata_api.infrastructure.observability.metrics import (
    get_cascade_guard_stops_total,
    get_cascade_recalculations_total,
)

logger = logging.getLogger(__name__)

DEFAULT_CASCADE_MAX_DEPTH = 5


@dataclass(slots=True)
class CascadeReport:
    """Keys recalculated or failed during one cascade, in visiting order."""

    recalculated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class CascadeRecalculator:
    """Walk and recompute the dependents of a just-saved entity."""

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        pipeline: EntityValuePipeline,
        max_depth: int = DEFAULT_CASCADE_MAX_DEPTH,
    ) -> None:
        """Initialize the recalculator.

        Args:
            uow_factory: Builds a fresh UnitOfWork used to look up dependents.
            pipeline: Pipeline re-run for each dependent.
            max_depth: Maximum number of hops followed from the trigger.
        """
        self._uow_factory = uow_factory
        self._pipeline = pipeline
        self._max_depth = max_depth

    async def cascade(
        self,
        *,
        principal: Principal,
        updated_key: str,
        period: PeriodRange,
        max_depth: int | None = None,
    ) -> CascadeReport:
        """Recompute every dependent of ``updated_key`` for ``period``.

        Args:
            principal: User whose save triggered the cascade.
            updated_key: Key of the entity that changed.
            period: Canonical range the change was stored under.
            max_depth: Overrides the configured depth limit.

        Returns:
            CascadeReport listing recalculated and failed keys.
        """
        report = CascadeReport()
        await self._walk(
            principal=principal,
            updated_key=normalize_entity_key(updated_key),
            period=period,
            depth=0,
            max_depth=self._max_depth if max_depth is None else max_depth,
            visited=set(),
            report=report,
        )
        logger.info(
            "values.cascade.done",
            extra={
                "trigger_key": normalize_entity_key(updated_key),
                "recalculated": len(report.recalculated),
                "failed": len(report.failed),
            },
        )
        return report

    async def after_save(
        self,
        principal: Principal,
        result: PipelineResult,
        *,
        skip: bool = False,
    ) -> CascadeReport | None:
        """Cascade from a successful save unless skipped or the entity has no key.

        The triggering save has already been committed, so a failure of the
        cascade itself is logged and reported as None.
        """
        if skip or not result.entity.key:
            return None
        try:
            return await self.cascade(
                principal=principal,
                updated_key=result.entity.key,
                period=result.range,
            )
        except Exception:  # noqa: BLE001 - the triggering save is already committed
            logger.exception(
                "values.cascade.failed",
                extra={"trigger_key": result.entity.key},
            )
            return None

    async def _walk(
        self,
        *,
        principal: Principal,
        updated_key: str,
        period: PeriodRange,
        depth: int,
        max_depth: int,
        visited: set[str],
        report: CascadeReport,
    ) -> None:
        if depth >= max_depth:
            self._guard_stop("max_depth", updated_key, depth)
            return
        if updated_key in visited:
            self._guard_stop("cycle", updated_key, depth)
            return
        visited.add(updated_key)

        for dependent in await self._dependents_of(principal.org_id, updated_key):
            if not dependent.key or not dependent.is_periodic:
                get_cascade_recalculations_total().labels(outcome="skipped").inc()
                continue
            own_range = resolve_period(period.start, dependent.granularity)
            if not same_period(own_range, period):
                get_cascade_recalculations_total().labels(outcome="skipped").inc()
                logger.debug(
                    "values.cascade.skip_period",
                    extra={"key": dependent.key, "granularity": dependent.granularity.value},
                )
                continue

            try:
                await self._recalculate(principal, dependent, period)
            except Exception:  # noqa: BLE001 - one failing dependent must not stop its siblings
                get_cascade_recalculations_total().labels(outcome="error").inc()
                report.failed.append(dependent.key)
                logger.warning(
                    "values.cascade.dependent_failed",
                    extra={"key": dependent.key, "trigger_key": updated_key, "depth": depth},
                    exc_info=True,
                )
                continue

            get_cascade_recalculations_total().labels(outcome="recalculated").inc()
            report.recalculated.append(dependent.key)
            await self._walk(
                principal=principal,
                updated_key=dependent.key,
                period=period,
                depth=depth + 1,
                max_depth=max_depth,
                visited=visited,
                report=report,
            )

    async def _dependents_of(self, org_id: UUID, key: str) -> list[StrategicEntity]:
        async with self._uow_factory() as tx:
            candidates = await repositories_of(tx).entities.list_with_formula(org_id)
        return [entity for entity in candidates if depends_on(entity.formula, key)]

    async def _recalculate(
        self,
        principal: Principal,
        dependent: StrategicEntity,
        period: PeriodRange,
    ) -> PipelineResult:
        async with self._uow_factory() as tx:
            periods = repositories_of(tx).periods
            stored = await periods.get_for_period(dependent.id, period)
            if stored is None:
                stored = await periods.get_latest(dependent.id)

        inputs = ValueInput(
            values=dict(stored.variable_values) if stored is not None else {},
            manual_value=stored.actual_value if stored is not None else None,
            note=stored.note if stored is not None else None,
        )
        return await self._pipeline.run(
            principal=principal,
            entity_id=dependent.id,
            operation=ValueOperation.SAVE_DRAFT,
            inputs=inputs,
            as_of=period.start,
            check_access=False,
        )

    def _guard_stop(self, reason: str, key: str, depth: int) -> None:
        get_cascade_guard_stops_total().labels(reason=reason).inc()
        logger.warning(
            "values.cascade.guard_stop",
            extra={"reason": reason, "key": key, "depth": depth},
        )


__all__ = ["DEFAULT_CASCADE_MAX_DEPTH", "CascadeRecalculator", "CascadeReport"]
