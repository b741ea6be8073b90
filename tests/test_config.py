"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from connect_arena.config import Settings, load_settings


def test_defaults(monkeypatch) -> None:
    """Test unset variables fall back to defaults."""
    for name in ("MATCHMAKING_TIMEOUT", "RECONNECT_TIMEOUT", "AI_SEARCH_DEPTH", "AI_MOVE_DELAY",
                 "PERSIST_DIR", "PERSIST_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    assert load_settings() == Settings()


def test_overrides(monkeypatch) -> None:
    """Test every variable is read and depth is clamped."""
    monkeypatch.setenv("MATCHMAKING_TIMEOUT", "2.5")
    monkeypatch.setenv("RECONNECT_TIMEOUT", "60")
    monkeypatch.setenv("AI_SEARCH_DEPTH", "12")
    monkeypatch.setenv("PERSIST_DIR", "/tmp/elsewhere")
    monkeypatch.setenv("PERSIST_ENABLED", "false")

    settings = load_settings()
    assert settings.matchmaking_timeout == 2.5
    assert settings.reconnect_timeout == 60.0
    assert settings.ai_search_depth == 7
    assert settings.persist_dir == Path("/tmp/elsewhere")
    assert settings.persist_enabled is False


def test_invalid_number(monkeypatch) -> None:
    """Test a malformed number is reported."""
    monkeypatch.setenv("RECONNECT_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        load_settings()
