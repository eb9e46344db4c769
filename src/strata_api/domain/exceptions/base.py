# src/strata_api/domain/exceptions/base.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Base Domain Exceptions.

Summary:
    Canonical base class for domain/application exceptions so that adapters
    can map failures onto stable error codes deterministically.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all domain/application exceptions.

    Attributes:
        code:
            Stable error code suitable for callers and metrics. Subclasses set
            a class-level default; instances may override it.
        message:
            Human-readable error message.
        details:
            Optional machine-readable diagnostic payload used by adapters and
            logging code.
    """

    code: str = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str = "",
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a DomainError instance.

        Args:
            message:
                Human-readable error message, safe to surface to callers.
            code:
                Optional per-instance error code overriding the class default.
            details:
                Optional structured diagnostic payload for logs or adapters.
        """
        super().__init__(message or (code or self.code))
        if code is not None:
            self.code = code
        self.message = message or self.code
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        """Return the human-readable message for this error."""
        return self.message
