# src/strata_api/domain/services/formula/dependencies.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT
"""Dependency extraction from formula text.

Purpose:
    Find the entity keys a formula references through ``get("KEY")`` or
    ``get('KEY')``. Used to pre-resolve dependencies before evaluation and
    to build the reverse-dependency index for cascading recalculation.

Layer:
    domain/services/formula
"""

from __future__ import annotations

import re
from typing import Final

from strata_api.domain.entities.strategic_entity import normalize_entity_key

_GET_CALL: Final = re.compile(r"\bget\s*\(\s*[\"']([^\"']+)[\"']\s*\)")


def extract_keys(formula: str | None) -> frozenset[str]:
    """Return the normalized keys referenced by ``get()`` calls in ``formula``."""
    if not formula:
        return frozenset()
    keys = (normalize_entity_key(match.group(1)) for match in _GET_CALL.finditer(formula))
    return frozenset(key for key in keys if key)


def depends_on(formula: str | None, key: str) -> bool:
    """Return True when ``formula`` references ``key`` through ``get()``."""
    normalized = normalize_entity_key(key)
    return bool(normalized) and normalized in extract_keys(formula)


__all__ = ["depends_on", "extract_keys"]
