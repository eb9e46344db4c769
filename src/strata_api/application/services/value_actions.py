# src/strata_api/application/services/value_actions.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Value actions facade (application layer).

Purpose:
    In-process entry point for the surrounding application. Validates raw
    payloads into request DTOs, runs the value use cases and folds their
    typed failures into :class:`ActionResultDTO` (``success=False`` with the
    error code and field-level issues).

Layer:
    application/services

Notes:
    - Only :class:`DomainError` and pydantic ``ValidationError`` become
      failed results. Anything else is unexpected and propagates.
    - Every call is timed in ``strata_value_operation_duration_seconds``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from pydantic import ValidationError

from strata_api.application.schemas.dto.base import BaseDTO
from strata_api.application.schemas.dto.values import (
    ActionResultDTO,
    ApproveEntityValueRequestDTO,
    LockEntityValueRequestDTO,
    RecalculateEntityValueRequestDTO,
    RequestChangesRequestDTO,
    SaveEntityValueRequestDTO,
    SubmitEntityValueRequestDTO,
    ValidationIssueDTO,
    issue_to_dto,
)
from strata_api.application.use_cases.values.approve_entity_value import (
    ApproveEntityValueUseCase,
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
from strata_api.domain.entities.principal import Principal
from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.exceptions.base import DomainError
from strata_api.domain.exceptions.kpi import ValidationFailedError
from strata_api.infrastructure.observability.metrics import get_value_operation_duration_seconds

logger = logging.getLogger(__name__)

TRequest = TypeVar("TRequest", bound=BaseDTO)

Payload = Mapping[str, Any] | BaseDTO


def issues_from_validation_error(exc: ValidationError) -> tuple[ValidationIssueDTO, ...]:
    """Convert pydantic errors into (path, message) issues."""
    return tuple(
        ValidationIssueDTO(
            path=tuple(part for part in err["loc"] if isinstance(part, (str, int))),
            message=err["msg"],
        )
        for err in exc.errors()
    )


class ValueActionsService:
    """Facade returning :class:`ActionResultDTO` for every value operation."""

    def __init__(
        self,
        *,
        save_draft: SaveEntityValueDraftUseCase,
        submit: SubmitEntityValueUseCase,
        approve: ApproveEntityValueUseCase,
        request_changes: RequestEntityValueChangesUseCase,
        recalculate: RecalculateEntityValueUseCase,
        lock: LockEntityValueUseCase,
    ) -> None:
        """Initialize the facade with its use cases."""
        self._save_draft = save_draft
        self._submit = submit
        self._approve = approve
        self._request_changes = request_changes
        self._recalculate = recalculate
        self._lock = lock

    async def save_draft(self, principal: Principal, payload: Payload) -> ActionResultDTO:
        """Compute and save a draft value for the current period."""
        return await self._dispatch(
            "save_draft", principal, payload, SaveEntityValueRequestDTO, self._save_draft.execute
        )

    async def submit(self, principal: Principal, payload: Payload) -> ActionResultDTO:
        """Compute and submit a value for approval."""
        return await self._dispatch(
            "submit", principal, payload, SubmitEntityValueRequestDTO, self._submit.execute
        )

    async def approve(self, principal: Principal, payload: Payload) -> ActionResultDTO:
        """Recompute and approve a value."""
        return await self._dispatch(
            "approve", principal, payload, ApproveEntityValueRequestDTO, self._approve.execute
        )

    async def request_changes(self, principal: Principal, payload: Payload) -> ActionResultDTO:
        """Return a submitted value to DRAFT with a message."""
        return await self._dispatch(
            "request_changes",
            principal,
            payload,
            RequestChangesRequestDTO,
            self._request_changes.execute,
        )

    async def recalculate(self, principal: Principal, payload: Payload) -> ActionResultDTO:
        """Recompute a formula entity from its latest stored inputs."""
        return await self._dispatch(
            "recalculate",
            principal,
            payload,
            RecalculateEntityValueRequestDTO,
            self._recalculate.execute,
        )

    async def lock(self, principal: Principal, payload: Payload) -> ActionResultDTO:
        """Lock an approved value."""
        return await self._dispatch(
            "lock", principal, payload, LockEntityValueRequestDTO, self._lock.execute
        )

    async def _dispatch(
        self,
        operation: str,
        principal: Principal,
        payload: Payload,
        request_type: type[TRequest],
        handler: Callable[..., Awaitable[ActionResultDTO]],
    ) -> ActionResultDTO:
        started = time.perf_counter()
        outcome = "success"
        try:
            req = (
                payload
                if isinstance(payload, request_type)
                else request_type.model_validate(
                    payload.model_dump() if isinstance(payload, BaseDTO) else payload
                )
            )
            return await handler(req, principal=principal)
        except ValidationError as exc:
            outcome = ErrorCode.VALIDATION_FAILED.value
            logger.info(
                "values.action.invalid_payload",
                extra={"operation": operation, "errors": exc.error_count()},
            )
            return ActionResultDTO(
                success=False,
                error=ErrorCode.VALIDATION_FAILED.value,
                issues=issues_from_validation_error(exc),
            )
        except DomainError as exc:
            outcome = exc.code
            logger.info(
                "values.action.rejected",
                extra={"operation": operation, "error": exc.code, "user_id": principal.user_id},
            )
            issues = (
                tuple(issue_to_dto(issue) for issue in exc.issues)
                if isinstance(exc, ValidationFailedError)
                else ()
            )
            return ActionResultDTO(success=False, error=exc.code, issues=issues)
        except Exception:
            outcome = "error"
            raise
        finally:
            get_value_operation_duration_seconds().labels(
                operation=operation, outcome=outcome
            ).observe(time.perf_counter() - started)


__all__ = ["ValueActionsService", "issues_from_validation_error"]
