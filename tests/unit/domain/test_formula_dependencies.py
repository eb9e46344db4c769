# tests/unit/domain/test_formula_dependencies.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

from strata_api.domain.services.formula import depends_on, extract_keys


def test_extracts_normalized_keys_from_both_quote_styles() -> None:
    formula = "return get(\"revenue\") + get( 'Cost' ) - get(\"REVENUE\");"

    assert extract_keys(formula) == frozenset({"REVENUE", "COST"})


def test_ignores_blank_keys_and_other_calls() -> None:
    formula = "return get('') + get('   ') + budget('X') + target(\"Y\");"

    assert extract_keys(formula) == frozenset()


def test_no_formula_has_no_keys() -> None:
    assert extract_keys(None) == frozenset()
    assert extract_keys("A + B") == frozenset()


def test_depends_on_matches_case_insensitively() -> None:
    formula = "return get('Revenue') * 2;"

    assert depends_on(formula, "revenue")
    assert depends_on(formula, " REVENUE ")
    assert not depends_on(formula, "COST")
    assert not depends_on(formula, "")
    assert not depends_on(None, "REVENUE")
