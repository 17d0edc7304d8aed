"""Tests for AgentConfig."""
from __future__ import annotations

import pytest

from turn_loop.config import DEFAULT_MODEL, AgentConfig
from turn_loop.retry import RetryPolicy


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TURN_LOOP_MODEL", "TURN_LOOP_INSTRUCTIONS", "TURN_LOOP_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AgentConfig()
    assert config.model == DEFAULT_MODEL
    assert config.chain_responses is True
    assert config.retry == RetryPolicy()


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TURN_LOOP_MODEL", "gpt-env")
    monkeypatch.setenv("TURN_LOOP_INSTRUCTIONS", "be brief")
    monkeypatch.setenv("TURN_LOOP_MAX_ATTEMPTS", "5")
    config = AgentConfig.from_env()
    assert config.model == "gpt-env"
    assert config.instructions == "be brief"
    assert config.retry.max_attempts == 5


def test_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TURN_LOOP_MODEL", "gpt-env")
    config = AgentConfig.from_env(model="gpt-flag", instructions=None)
    assert config.model == "gpt-flag"
    assert config.instructions == ""


def test_empty_env_uses_defaults() -> None:
    assert AgentConfig.from_env() == AgentConfig()
