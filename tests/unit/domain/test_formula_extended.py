# tests/unit/domain/test_formula_extended.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

import pytest

from strata_api.domain.enums.error_code import ErrorCode
from strata_api.domain.services.formula import evaluate_extended, evaluate_formula
from strata_api.domain.services.formula.lexer import TokenKind, tokenize


def _lookup(values: dict[str, float]):  # type: ignore[no-untyped-def]
    def lookup(key: str) -> float:
        return values.get(key.upper(), 0.0)

    return lookup


def test_margin_formula_reads_dependencies_and_vars() -> None:
    outcome = evaluate_formula(
        "return (get('REVENUE') - vars.COST) / get('REVENUE') * 100;",
        {"COST": 60},
        _lookup({"REVENUE": 100}),
    )

    assert outcome.ok
    assert outcome.value == pytest.approx(40.0)


def test_expression_without_return_is_wrapped() -> None:
    outcome = evaluate_extended("vars.A * 2", {"A": 3})

    assert outcome.value == 6.0


def test_declarations_and_blocks() -> None:
    formula = """
        const base = vars.A;
        let scaled = base * 3;
        if (scaled > 10) {
            scaled = scaled - 10;
        } else {
            return -1;
        }
        return scaled + 1;
    """

    assert evaluate_extended(formula, {"A": 4}).value == 3.0
    assert evaluate_extended(formula, {"A": 1}).value == -1.0


def test_helpers_are_available_in_call_position() -> None:
    formula = "return sum(1, 2, 3) + avg(2, 4) + max(1, 5) - min(3, 4) + abs(-2);"

    assert evaluate_extended(formula, {}).value == 13.0


def test_variable_named_like_a_helper_still_resolves_bare() -> None:
    outcome = evaluate_extended("return sum + max(sum, 1);", {"sum": 7})

    assert outcome.value == 14.0


def test_math_namespace() -> None:
    outcome = evaluate_extended("return Math.round(2.5) + Math.floor(1.7) + Math.max(1, 2);", {})

    assert outcome.value == 6.0


def test_variables_resolve_case_and_punctuation_insensitively() -> None:
    variables = {"Revenue Total": 5}

    assert evaluate_extended("return revenuetotal;", variables).value == 5.0
    assert evaluate_extended("return vars['Revenue Total'];", variables).value == 5.0


def test_missing_variables_and_lookups_read_zero() -> None:
    assert evaluate_extended("return vars.MISSING + 1;", {}).value == 1.0
    assert evaluate_extended("return get('X') + 1;", {}, None).value == 1.0


def test_logical_or_returns_an_operand() -> None:
    assert evaluate_extended("return vars.A || 5;", {}).value == 5.0
    assert evaluate_extended("return vars.A || 5;", {"A": 2}).value == 2.0


def test_conditional_expression() -> None:
    formula = "return get('REVENUE') ? vars.COST / get('REVENUE') : 0;"

    assert evaluate_formula(formula, {"COST": 5}, _lookup({})).value == 0.0
    assert evaluate_formula(formula, {"COST": 5}, _lookup({"REVENUE": 10})).value == 0.5


@pytest.mark.parametrize(
    ("formula", "error"),
    [
        ("", ErrorCode.EMPTY_FORMULA),
        ("return 'abc';", ErrorCode.INVALID_FORMULA_RESULT),
        ("return vars.A > 1;", ErrorCode.INVALID_FORMULA_RESULT),
        ("return 1 / vars.ZERO;", ErrorCode.INVALID_FORMULA_RESULT),
        ("return (1 + ;", ErrorCode.FAILED_TO_EVALUATE_FORMULA),
        ("const a = 1; a = 2; return a;", ErrorCode.FAILED_TO_EVALUATE_FORMULA),
        ("return vars.A.B.C;", ErrorCode.FAILED_TO_EVALUATE_FORMULA),
    ],
)
def test_failures_are_reported_not_raised(formula: str, error: ErrorCode) -> None:
    outcome = evaluate_extended(formula, {"A": 2})

    assert not outcome.ok
    assert outcome.error is error


def test_lookup_errors_become_evaluation_failures() -> None:
    def broken(key: str) -> float:
        raise LookupError(key)

    outcome = evaluate_extended("return get('X');", {}, broken)

    assert outcome.error is ErrorCode.FAILED_TO_EVALUATE_FORMULA


def test_number_literals_are_tokenized_without_touching_member_access() -> None:
    tokens = tokenize("1.5 + .25 * 2e1 - 3. + vars.X")

    numbers = [t.text for t in tokens if t.kind is TokenKind.NUMBER]
    names = [t.text for t in tokens if t.kind is TokenKind.NAME]

    assert numbers == ["1.5", ".25", "2e1", "3."]
    assert names == ["vars", "X"]
    assert evaluate_extended("return .5 + 1e1;", {}, _lookup({})).value == 10.5
