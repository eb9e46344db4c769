# src/strata_api/adapters/repositories/base_repository.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared foundation for Strata's SQLAlchemy repositories.

Purpose:
    Shared mechanics for all repositories:
      * Deterministic ordering helpers (NULLS LAST + PK tie-breakers).
      * Safe fetch helpers (optional, all).
      * Timed execution that records DB latency and error metrics.

Layer: adapters / repositories

Notes:
    * No business logic, no domain decisions.
    * Repositories never commit; the Unit of Work owns transactions.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, nulls_last
from sqlalchemy.ext.asyncio import AsyncSession

from strata_api.infrastructure.observability.metrics import (
    get_db_errors_total,
    get_db_operation_duration_seconds,
)

TModel = TypeVar("TModel")


class BaseRepository(Generic[TModel]):  # noqa: UP046
    """Base class for all repositories."""

    #: Logical model name used in metric labels.
    _MODEL_NAME = "unknown"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the target database.
        """
        self._session: AsyncSession = session
        self._metrics_hist = get_db_operation_duration_seconds()
        self._metrics_err = get_db_errors_total()

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _timed(self, operation: str) -> AsyncIterator[None]:
        """Record latency and errors of the wrapped DB operation.

        Exceptions are counted and re-raised.
        """
        start = time.perf_counter()
        outcome = "success"
        try:
            yield
        except Exception as exc:
            outcome = "error"
            with suppress(Exception):
                self._metrics_err.labels(
                    operation=operation,
                    model=self._MODEL_NAME,
                    reason=type(exc).__name__,
                ).inc()
            raise
        finally:
            with suppress(Exception):
                self._metrics_hist.labels(
                    operation=operation,
                    model=self._MODEL_NAME,
                    outcome=outcome,
                ).observe(time.perf_counter() - start)

    # ------------------------------------------------------------------
    # Deterministic ordering utilities
    # ------------------------------------------------------------------

    @staticmethod
    def order_by_latest(
        stmt: Select[Any],
        timestamp_col: Any,
        pk_col: Any,
    ) -> Select[Any]:
        """Apply deterministic latest-first ordering.

        The resulting query orders by:

            timestamp DESC NULLS LAST, pk ASC
        """
        return stmt.order_by(
            nulls_last(timestamp_col.desc()),
            pk_col.asc(),
        )

    @staticmethod
    def order_by_created(
        stmt: Select[Any],
        created_col: Any,
        pk_col: Any,
    ) -> Select[Any]:
        """Apply deterministic oldest-first ordering by creation time.

        The resulting query orders by:

            created_at ASC, pk ASC
        """
        return stmt.order_by(created_col.asc(), pk_col.asc())

    # ------------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------------

    async def fetch_optional(self, stmt: Select[Any]) -> TModel | None:
        """Execute a statement and return zero or one row."""
        res = await self._session.execute(stmt)
        return res.scalars().first()

    async def fetch_all(self, stmt: Select[Any]) -> list[TModel]:
        """Execute a statement and return all rows as a list."""
        res = await self._session.execute(stmt)
        return list(res.scalars().all())


__all__ = ["BaseRepository"]
