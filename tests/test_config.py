import logging

from api_tester.config import AppSettings, get_settings


def test_test_mode_settings_use_memory_database():
    settings = get_settings()

    assert settings.debug is True
    assert settings.db.path == ":memory:"
    assert settings.log_level_value == logging.DEBUG


def test_settings_read_prefixed_env(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "/tmp/runs.db")
    monkeypatch.setenv("SERVER_USER_HEADER", "X-Session-User")
    monkeypatch.setenv("RUNS_MAX_RESPONSE_BODY_CHARS", "2048")
    monkeypatch.setenv("LOG_LEVEL", "warning")

    settings = AppSettings()

    assert settings.db.path == "/tmp/runs.db"
    assert settings.server.user_header == "X-Session-User"
    assert settings.runs.max_response_body_chars == 2048
    assert settings.log_level_value == logging.WARNING
