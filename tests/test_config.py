from pathlib import Path

import pytest

from vocabdrill.config import DEFAULT_SEED_PATH, DrillConfig


ENV_NAMES = (
    "DB_PATH",
    "SEED_PATH",
    "OPTION_COUNT",
    "STORE_WRITE_ATTEMPTS",
    "PREFETCH",
    "DAILY_GOAL",
    "SESSION_TTL_SECONDS",
    "MAX_SESSIONS",
)


def test_defaults_without_environment(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(f"VOCABDRILL_{name}", raising=False)
    config = DrillConfig.from_env()
    assert config.db_path is None
    assert config.seed_path == DEFAULT_SEED_PATH
    assert config.distractor_count == 3
    assert config.prefetch is True
    assert config.daily_goal == 20
    assert (config.session_ttl_seconds, config.max_sessions) == (1800, 1000)


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("VOCABDRILL_DB_PATH", str(tmp_path / "words.sqlite3"))
    monkeypatch.setenv("VOCABDRILL_SEED_PATH", str(tmp_path / "seed.json"))
    monkeypatch.setenv("VOCABDRILL_OPTION_COUNT", "5")
    monkeypatch.setenv("VOCABDRILL_STORE_WRITE_ATTEMPTS", "1")
    monkeypatch.setenv("VOCABDRILL_PREFETCH", "off")
    monkeypatch.setenv("VOCABDRILL_DAILY_GOAL", "0")
    monkeypatch.setenv("VOCABDRILL_SESSION_TTL_SECONDS", "90")
    monkeypatch.setenv("VOCABDRILL_MAX_SESSIONS", "5")

    config = DrillConfig.from_env()
    assert config.db_path == str(tmp_path / "words.sqlite3")
    assert config.seed_path == Path(tmp_path / "seed.json")
    assert config.distractor_count == 4
    assert config.store_write_attempts == 1
    assert config.prefetch is False
    assert config.daily_goal == 1
    assert (config.session_ttl_seconds, config.max_sessions) == (90, 5)


@pytest.mark.parametrize(
    "overrides",
    [{"option_count": 1}, {"store_write_attempts": 0}, {"session_ttl_seconds": 0}, {"max_sessions": 0}],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValueError):
        DrillConfig(**overrides)
