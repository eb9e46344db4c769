# src/strata_api/application/services/entity_value_pipeline.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Entity value pipeline (application layer).

Purpose:
    Validate inputs, compute and upsert one entity's value for its canonical
    period, applying the approval transition of the requested operation
    (save draft, submit, approve). Every run is one atomic UnitOfWork; a
    failure writes nothing.

Layer:
    application/services

Steps:
    1. Load the entity (``notFound``) and reject entities without a period
       cadence (``notKpi``).
    2. Check edit rights: administrators always, others through the
       assignment port (``unauthorized``). Approval skips this check and
       relies on approver rank; cascades skip it too.
    3. Resolve the canonical period and the next approval state.
    4. Validate required variables and compute the value:
         * formula: evaluated through a fresh :class:`ValueGraphResolver`,
         * variables without formula: their sum,
         * neither: the manual value (``valueIsRequired``).
    5. Upsert the period and the supplied non-static variable inputs, commit.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from strata_api.application.services.value_graph_resolver import ValueGraphResolver
from strata_api.application.uow import UnitOfWorkFactory, ValueEngineRepositories, repositories_of
from strata_api.domain.entities.principal import Principal
from strata_api.domain.entities.strategic_entity import StrategicEntity
from strata_api.domain.entities.value_period import ApprovalState, PeriodRange, ValuePeriod
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.enums.role import DEFAULT_APPROVAL_ROLE, Role, parse_role
from strata_api.domain.enums.value_status import ValueStatus
from strata_api.domain.exceptions.kpi import (
    EntityNotFoundError,
    EntityStateError,
    FormulaEvaluationError,
    UnauthorizedError,
    ValidationFailedError,
    ValidationIssue,
)
from strata_api.domain.services import approval_workflow
from strata_api.domain.services.approval_workflow import ApprovalContext
from strata_api.domain.services.period_resolver import resolve_period

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time (timezone-aware)."""
    return datetime.now(tz=UTC)


class ValueOperation(str, Enum):
    """Approval-relevant operation a pipeline run performs."""

    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    APPROVE = "approve"


@dataclass(frozen=True, slots=True)
class ValueInput:
    """Caller-supplied inputs for one pipeline run.

    Attributes:
        values: Non-static variable values keyed by variable id.
        manual_value: Value for entities without formula and variables.
        note: Note stored with the period.
    """

    values: Mapping[UUID, float] = field(default_factory=dict)
    manual_value: float | None = None
    note: str | None = None


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of a successful pipeline run."""

    entity: StrategicEntity
    period: ValuePeriod
    auto_approved: bool = False

    @property
    def range(self) -> PeriodRange:
        """Return the canonical range the value was stored under."""
        return self.period.period


@dataclass(frozen=True, slots=True)
class ComputedValue:
    """Computed figures for one period, before persistence."""

    calculated: float
    actual: float | None
    inputs: Mapping[UUID, float]


def _finite(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def collect_inputs(
    entity: StrategicEntity,
    supplied: Mapping[UUID, float],
) -> tuple[dict[str, float], dict[UUID, float]]:
    """Validate and assemble the variable inputs of ``entity``.

    Args:
        entity: Entity whose variables are being filled.
        supplied: Caller-supplied values keyed by variable id.

    Returns:
        ``(by_code, to_store)``: every variable's value keyed by code, and the
        supplied non-static values to persist keyed by variable id.

    Raises:
        ValidationFailedError: When a required variable has no value.
    """
    issues: list[ValidationIssue] = []
    by_code: dict[str, float] = {}
    to_store: dict[UUID, float] = {}

    for variable in entity.variables:
        if variable.is_static:
            static = _finite(variable.static_value)
            if variable.is_required and static is None:
                issues.append(
                    ValidationIssue(
                        path=("values", str(variable.id)),
                        message=ErrorCode.STATIC_VARIABLE_REQUIRED.value,
                    )
                )
            by_code[variable.code] = static if static is not None else 0.0
            continue

        value = _finite(supplied.get(variable.id))
        if value is None:
            if variable.is_required:
                issues.append(
                    ValidationIssue(
                        path=("values", str(variable.id)),
                        message=ErrorCode.VARIABLE_REQUIRED.value,
                    )
                )
            by_code[variable.code] = 0.0
            continue
        by_code[variable.code] = value
        to_store[variable.id] = value

    if issues:
        raise ValidationFailedError(issues)
    return by_code, to_store


class EntityValuePipeline:
    """Compute-and-save pipeline shared by save, submit, approve and cascades."""

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        clock: Clock = utc_now,
        default_approval_role: Role = DEFAULT_APPROVAL_ROLE,
    ) -> None:
        """Initialize the pipeline.

        Args:
            uow_factory: Builds a fresh UnitOfWork entered once per run.
            clock: Source of "now" for periods and approval stamps.
            default_approval_role: Approval role for organizations without one.
        """
        self._uow_factory = uow_factory
        self._clock = clock
        self._default_approval_role = default_approval_role

    @property
    def clock(self) -> Clock:
        """Return the pipeline's clock."""
        return self._clock

    async def approval_role(self, repos: ValueEngineRepositories, org_id: UUID) -> Role:
        """Return the organization's approval role, or the default when unset or unknown."""
        configured = parse_role(await repos.organizations.get_approval_role(org_id))
        return configured or self._default_approval_role

    async def approval_context(
        self,
        repos: ValueEngineRepositories,
        principal: Principal,
    ) -> ApprovalContext:
        """Build the approval context of ``principal`` in their organization."""
        role = await self.approval_role(repos, principal.org_id)
        return ApprovalContext.for_principal(principal, role)

    async def run(
        self,
        *,
        principal: Principal,
        entity_id: UUID,
        operation: ValueOperation,
        inputs: ValueInput,
        as_of: datetime | None = None,
        check_access: bool = True,
    ) -> PipelineResult:
        """Compute and store the entity's value for the period containing ``as_of``.

        Args:
            principal: Acting user.
            entity_id: Entity to compute.
            operation: Approval transition to apply.
            inputs: Variable values, manual value and note.
            as_of: Reference instant; defaults to the clock.
            check_access: Enforce the per-entity assignment check.

        Returns:
            PipelineResult with the stored period.

        Raises:
            EntityNotFoundError, EntityStateError, UnauthorizedError,
            ApprovalTransitionError, ValidationFailedError,
            FormulaEvaluationError: Nothing is written in any of these cases.
        """
        now = self._clock()
        async with self._uow_factory() as tx:
            repos = repositories_of(tx)
            entity = await repos.entities.get_by_id(principal.org_id, entity_id)
            if entity is None:
                raise EntityNotFoundError(ErrorCode.NOT_FOUND, f"Entity {entity_id} not found")
            if not entity.is_periodic:
                raise EntityStateError(ErrorCode.NOT_KPI, "Entity has no period granularity")

            if (
                check_access
                and operation is not ValueOperation.APPROVE
                and not principal.is_admin
                and not await repos.access.can_edit_values(
                    principal.org_id, principal.user_id, entity.id
                )
            ):
                raise UnauthorizedError("User may not edit this entity's values")

            ctx = await self.approval_context(repos, principal)
            period = resolve_period(as_of or now, entity.granularity)
            current = await repos.periods.get_for_period(entity.id, period)
            approval = self._transition(operation, current, ctx, now)

            computed = await self._compute(repos, principal.org_id, entity, inputs)

            stored = await repos.periods.upsert(
                ValuePeriod(
                    entity_id=entity.id,
                    period_start=period.start,
                    period_end=period.end,
                    id=current.id if current is not None else None,
                    actual_value=computed.actual,
                    calculated_value=computed.calculated,
                    final_value=computed.calculated,
                    note=inputs.note,
                    entered_by=principal.user_id,
                    approval=approval,
                    variable_values=dict(computed.inputs),
                )
            )
            if computed.inputs and stored.id is not None:
                await repos.periods.upsert_variable_values(stored.id, computed.inputs)
            await tx.commit()

        auto_approved = (
            operation is ValueOperation.SUBMIT and approval.status is ValueStatus.APPROVED
        )
        logger.info(
            "values.pipeline.stored",
            extra={
                "entity_id": str(entity.id),
                "key": entity.key,
                "operation": operation.value,
                "status": approval.status.value,
                "period_start": period.start.isoformat(),
                "value": computed.calculated,
            },
        )
        return PipelineResult(entity=entity, period=stored, auto_approved=auto_approved)

    @staticmethod
    def _transition(
        operation: ValueOperation,
        current: ValuePeriod | None,
        ctx: ApprovalContext,
        now: datetime,
    ) -> ApprovalState:
        state = current.approval if current is not None else None
        if operation is ValueOperation.SUBMIT:
            return approval_workflow.submit(state, ctx, now)
        if operation is ValueOperation.APPROVE:
            return approval_workflow.approve(state, ctx, now)
        return approval_workflow.save_draft(state, ctx)

    async def _compute(
        self,
        repos: ValueEngineRepositories,
        org_id: UUID,
        entity: StrategicEntity,
        inputs: ValueInput,
    ) -> ComputedValue:
        by_code, to_store = collect_inputs(entity, inputs.values)

        if entity.has_formula:
            resolver = ValueGraphResolver(
                org_id=org_id,
                entities=repos.entities,
                periods=repos.periods,
            )
            outcome = await resolver.evaluate(entity, by_code)
            if not outcome.ok or outcome.value is None:
                code = outcome.error or ErrorCode.FAILED_TO_EVALUATE_FORMULA
                raise FormulaEvaluationError(code, f"Formula of {entity.key or entity.id} failed")
            calculated = outcome.value
        elif entity.variables:
            calculated = float(sum(by_code.values()))
        else:
            manual = _finite(inputs.manual_value)
            if manual is None:
                raise ValidationFailedError(
                    [
                        ValidationIssue(
                            path=("manualValue",),
                            message=ErrorCode.VALUE_IS_REQUIRED.value,
                        )
                    ],
                    code=ErrorCode.VALUE_IS_REQUIRED,
                )
            calculated = manual

        actual = _finite(inputs.manual_value) if not entity.variables else None
        return ComputedValue(calculated=calculated, actual=actual, inputs=to_store)


__all__ = [
    "Clock",
    "ComputedValue",
    "EntityValuePipeline",
    "PipelineResult",
    "ValueInput",
    "ValueOperation",
    "collect_inputs",
    "utc_now",
]
