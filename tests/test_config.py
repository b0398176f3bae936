import pytest
from pydantic import ValidationError

from wclogs.config import AnalysisConfig, Settings, WCLConfig, get_settings


def test_default_settings_have_sane_defaults():
    settings = Settings(_env_file=None)
    assert settings.log_level == "INFO"
    assert settings.api_key == ""
    assert settings.wcl.api_url == "https://www.warcraftlogs.com/api/v2/client"
    assert settings.analysis.interrupt_window_ms == 300.0
    assert settings.analysis.death_window_before_ms == 5000.0
    assert settings.analysis.death_window_after_ms == 1000.0
    assert settings.analysis.death_event_limit == 100


def test_env_override(monkeypatch):
    monkeypatch.setenv("WCL__CLIENT_ID", "test-id")
    monkeypatch.setenv("WCL__CLIENT_SECRET", "test-secret")
    monkeypatch.setenv("ANALYSIS__INTERRUPT_WINDOW_MS", "500")
    settings = Settings(_env_file=None)
    assert settings.wcl.client_id == "test-id"
    assert settings.wcl.client_secret.get_secret_value() == "test-secret"
    assert settings.analysis.interrupt_window_ms == 500.0


def test_wcl_secret_not_in_repr(monkeypatch):
    monkeypatch.setenv("WCL__CLIENT_ID", "x")
    monkeypatch.setenv("WCL__CLIENT_SECRET", "super-secret")
    settings = Settings(_env_file=None)
    assert "super-secret" not in repr(settings)


def test_has_credentials():
    assert not Settings(_env_file=None).has_credentials
    assert not Settings(_env_file=None, wcl=WCLConfig(client_id="x")).has_credentials
    assert Settings(
        _env_file=None, wcl=WCLConfig(client_id="x", client_secret="y"),
    ).has_credentials


@pytest.mark.parametrize("analysis", [
    {"interrupt_window_ms": -1},
    {"lookup_concurrency": 0},
    {"death_event_limit": 0},
])
def test_invalid_analysis_settings_rejected(analysis):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, analysis=AnalysisConfig(**analysis))


def test_get_settings_returns_same_instance(monkeypatch):
    monkeypatch.setenv("WCL__CLIENT_ID", "x")
    monkeypatch.setenv("WCL__CLIENT_SECRET", "x")
    get_settings.cache_clear()
    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2
    get_settings.cache_clear()
