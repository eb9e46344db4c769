# tests/unit/config/test_settings.py
# Copyright (c) Strata.
# SPDX-License-Identifier: MIT

from __future__ import annotations

import pytest

from strata_api.config import Environment, Settings, get_settings
from strata_api.domain.enums.role import Role


def test_defaults_are_sane(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    s = Settings()

    assert s.environment is Environment.TEST
    assert s.cascade_max_depth == 5
    assert s.dependency_tree_max_depth == 5
    assert s.default_approval_role is Role.MANAGER
    assert s.changes_request_min_length == 3
    assert s.approvals_page_size == 200
    assert s.log_level == "INFO"


def test_env_overrides_are_parsed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CASCADE_MAX_DEPTH", "8")
    monkeypatch.setenv("DEFAULT_APPROVAL_ROLE", "PMO")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DB_ECHO", "true")

    s = get_settings()

    assert s.cascade_max_depth == 8
    assert s.default_approval_role is Role.PMO
    assert s.log_level == "DEBUG"
    assert s.db_echo is True


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("CASCADE_MAX_DEPTH", "0"),
        ("APPROVALS_PAGE_SIZE", "-1"),
        ("LOG_LEVEL", "chatty"),
        ("DEFAULT_APPROVAL_ROLE", "INTERN"),
    ],
)
def test_invalid_values_raise_runtime_error(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError, match="Invalid configuration"):
        get_settings()
