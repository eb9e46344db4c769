# src/strata_api/dependencies/value_engine.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Composition root for the KPI value engine.

Purpose:
    Wire settings, the SQLAlchemy Unit of Work factory, the value pipeline, the
    cascading recalculator and every use case into one container that
    outer surfaces (HTTP handlers, workers, scripts) call into.

Usage:
    engine = build_value_engine()
    result = await engine.actions.save_draft(principal, {"entity_id": ..., ...})

Layer:
    dependencies
"""

from __future__ import annotations

from dataclasses import dataclass

from strata_api.adapters.uow import SqlAlchemyUnitOfWork
from strata_api.application.services.cascade_recalculator import CascadeRecalculator
from strata_api.application.services.entity_value_pipeline import (
    Clock,
    EntityValuePipeline,
    utc_now,
)
from strata_api.application.services.value_actions import ValueActionsService
from strata_api.application.uow import UnitOfWorkFactory
from strata_api.application.use_cases.entities.get_entity_dependency_tree import (
    GetEntityDependencyTreeUseCase,
)
from strata_api.application.use_cases.entities.get_entity_detail import GetEntityDetailUseCase
from strata_api.application.use_cases.entities.preview_entity_formula import (
    PreviewEntityFormulaUseCase,
)
from strata_api.application.use_cases.values.approve_entity_value import (
    ApproveEntityValueUseCase,
)
from strata_api.application.use_cases.values.list_entity_approvals import (
    ListEntityApprovalsUseCase,
)
from strata_api.application.use_cases.values.lock_entity_value import LockEntityValueUseCase
from strata_api.application.use_cases.values.recalculate_entity_value import (
    RecalculateEntityValueUseCase,
)
from strata_api.application.use_cases.values.request_entity_value_changes import (
    RequestEntityValueChangesUseCase,
)
from strata_api.application.use_cases.values.save_entity_value_draft import (
    SaveEntityValueDraftUseCase,
)
from strata_api.application.use_cases.values.submit_entity_value import (
    SubmitEntityValueUseCase,
)
from strata_api.config.settings import Settings, get_settings
from strata_api.infrastructure.database.session import init_engine_and_sessionmaker
from strata_api.infrastructure.logging.logger import configure_root_logging


def sqlalchemy_uow_factory(settings: Settings) -> UnitOfWorkFactory:
    """Return a factory of SQLAlchemy UnitOfWork instances.

    Behavior:
        - Initializes the global engine/sessionmaker once (idempotent).
        - Each call of the returned factory builds a new SqlAlchemyUnitOfWork
          bound to that sessionmaker (one per transaction).
    """
    session_factory = init_engine_and_sessionmaker(settings)

    def build() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory=session_factory)

    return build


@dataclass(frozen=True, slots=True)
class ValueEngine:
    """Wired value engine: action facade plus read-side use cases."""

    pipeline: EntityValuePipeline
    cascade: CascadeRecalculator
    actions: ValueActionsService
    entity_detail: GetEntityDetailUseCase
    preview_formula: PreviewEntityFormulaUseCase
    dependency_tree: GetEntityDependencyTreeUseCase
    approvals: ListEntityApprovalsUseCase


def build_value_engine(
    settings: Settings | None = None,
    *,
    uow_factory: UnitOfWorkFactory | None = None,
    clock: Clock = utc_now,
) -> ValueEngine:
    """Build the value engine.

    Args:
        settings: Application settings; defaults to ``get_settings()``.
        uow_factory: UnitOfWork factory override (tests); defaults to
            :func:`sqlalchemy_uow_factory` on the configured database.
        clock: UTC clock used for period resolution and approval stamps.

    Returns:
        The wired ValueEngine.
    """
    settings = settings or get_settings()
    configure_root_logging(settings.log_level)

    if uow_factory is None:
        uow_factory = sqlalchemy_uow_factory(settings)

    pipeline = EntityValuePipeline(
        uow_factory=uow_factory,
        clock=clock,
        default_approval_role=settings.default_approval_role,
    )
    cascade = CascadeRecalculator(
        uow_factory=uow_factory,
        pipeline=pipeline,
        max_depth=settings.cascade_max_depth,
    )

    actions = ValueActionsService(
        save_draft=SaveEntityValueDraftUseCase(pipeline=pipeline, cascade=cascade),
        submit=SubmitEntityValueUseCase(pipeline=pipeline, cascade=cascade),
        approve=ApproveEntityValueUseCase(pipeline=pipeline, cascade=cascade),
        request_changes=RequestEntityValueChangesUseCase(
            uow_factory=uow_factory,
            pipeline=pipeline,
            min_message_length=settings.changes_request_min_length,
        ),
        recalculate=RecalculateEntityValueUseCase(
            uow_factory=uow_factory,
            pipeline=pipeline,
            cascade=cascade,
        ),
        lock=LockEntityValueUseCase(uow_factory=uow_factory, pipeline=pipeline),
    )

    return ValueEngine(
        pipeline=pipeline,
        cascade=cascade,
        actions=actions,
        entity_detail=GetEntityDetailUseCase(uow_factory=uow_factory, pipeline=pipeline),
        preview_formula=PreviewEntityFormulaUseCase(uow_factory=uow_factory),
        dependency_tree=GetEntityDependencyTreeUseCase(
            uow_factory=uow_factory,
            max_depth=settings.dependency_tree_max_depth,
        ),
        approvals=ListEntityApprovalsUseCase(
            uow_factory=uow_factory,
            pipeline=pipeline,
            limit=settings.approvals_page_size,
        ),
    )


__all__ = ["ValueEngine", "build_value_engine", "sqlalchemy_uow_factory"]
