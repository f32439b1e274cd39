"""
Unit tests for configuration, error classification and session storage.
"""

import pytest

from fakes import FakeAPIError
from studyplanner.config import Settings, get_settings
from studyplanner.core.exceptions import (
    SESSION_EXPIRED_MESSAGE,
    ConfigurationError,
    ErrorKind,
    InvalidInputError,
    SessionExpiredError,
    TransientBackendError,
    app_error_to_http,
    classify_error,
)
from studyplanner.core.storage import FileSessionStorage


# ── Config ───────────────────────────────────────────────

class TestSettings:
    @pytest.fixture(autouse=True)
    def isolated(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)  # no stray .env
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_missing_supabase_config(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)

        with pytest.raises(ConfigurationError) as exc:
            get_settings()

        assert "SUPABASE_URL" in exc.value.detail

    def test_blank_key(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "  ")

        with pytest.raises(ConfigurationError):
            get_settings()

    def test_loaded_from_env(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "anon-key")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")

        settings = get_settings()

        assert settings.TOKEN_EXPIRY_SKEW_SECONDS == 30
        assert settings.DATA_LOAD_TIMEOUT_SECONDS == 10.0
        assert settings.cors_origins == ["http://a.test", "http://b.test"]
        assert get_settings() is settings

    def test_explicit_values(self):
        settings = Settings(SUPABASE_URL="https://x.supabase.co", SUPABASE_KEY="k")
        assert settings.SESSION_KEY_PREFIX == "supabase.auth"


# ── Errors ───────────────────────────────────────────────

class TestClassifyError:
    def test_app_errors_pass_through(self):
        error = InvalidInputError("bad day")
        assert classify_error(error, "update timetable") is error

    def test_refresh_token_error_is_session_expired(self):
        error = classify_error(FakeAPIError("Invalid Refresh Token: Already Used"), "add grade")
        assert isinstance(error, SessionExpiredError)
        assert error.message == SESSION_EXPIRED_MESSAGE
        assert error.kind == ErrorKind.SESSION_EXPIRED

    def test_timeout(self):
        error = classify_error(TimeoutError(), "load data")
        assert isinstance(error, TransientBackendError)
        assert error.message == "Failed to load data: request timed out"

    def test_generic_failure_names_operation(self):
        error = classify_error(FakeAPIError("permission denied", code="42501"), "delete homework")
        assert error.kind == ErrorKind.TRANSIENT
        assert error.message == "Failed to delete homework: permission denied"
        assert error.detail == "permission denied"

    def test_plain_exception_without_message(self):
        error = classify_error(RuntimeError())
        assert error.message == "RuntimeError"

    @pytest.mark.parametrize("error, status_code", [
        (SessionExpiredError(), 401),
        (InvalidInputError("bad"), 422),
        (ConfigurationError("missing"), 500),
        (TransientBackendError("down"), 502),
    ])
    def test_http_mapping(self, error, status_code):
        http = app_error_to_http(error)
        assert http.status_code == status_code
        assert http.detail["type"] == type(error).__name__
        assert http.detail["error"] == error.message


# ── Storage ──────────────────────────────────────────────

class TestFileSessionStorage:
    async def test_round_trip_survives_new_instance(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        storage = FileSessionStorage(path)
        await storage.set_item("supabase.auth.token", '{"access_token": "x"}')
        await storage.set_item("theme", "dark")

        reopened = FileSessionStorage(path)
        assert await reopened.get_item("supabase.auth.token") == '{"access_token": "x"}'
        assert sorted(await reopened.keys()) == ["supabase.auth.token", "theme"]

        await reopened.remove_item("theme")
        await reopened.remove_item("never-set")
        assert await storage.keys() == ["supabase.auth.token"]

    async def test_corrupted_file_reads_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")
        storage = FileSessionStorage(path)

        assert await storage.get_item("supabase.auth.token") is None
        await storage.set_item("k", "v")
        assert await storage.keys() == ["k"]

    async def test_clear(self, tmp_path):
        storage = FileSessionStorage(tmp_path / "session.json")
        await storage.clear()
        await storage.set_item("a", "1")
        await storage.clear()
        assert await storage.keys() == []
