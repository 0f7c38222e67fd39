import pytest

from visits.config import Settings, load_settings
from visits.errors import ConfigurationError


def test_defaults_without_file(tmp_path):
    settings = load_settings(str(tmp_path / "missing.yaml"), environ={})
    assert settings == Settings()
    assert settings.validate() is settings


def test_yaml_then_environment(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("backend: memory\nfetch_timeout: 5\nunknown: 1\n", encoding="utf-8")
    settings = load_settings(str(path), environ={"VISITS_FETCH_TIMEOUT": "2.5", "VISITS_BACKEND": "DuckDB"})
    assert settings.backend == "duckdb"
    assert settings.fetch_timeout == 2.5


def test_supabase_requires_credentials():
    settings = load_settings("does-not-exist.yaml", environ={"VISITS_BACKEND": "supabase", "SUPABASE_URL": "https://x"})
    with pytest.raises(ConfigurationError) as info:
        settings.validate()
    assert info.value.missing == ("SUPABASE_ANON_KEY",)


def test_unknown_backend_and_bad_timeout():
    with pytest.raises(ConfigurationError):
        Settings(backend="sqlite").validate()
    with pytest.raises(ConfigurationError):
        Settings(fetch_timeout=0).validate()


def test_non_numeric_timeout_is_configuration_error():
    with pytest.raises(ConfigurationError) as info:
        load_settings("does-not-exist.yaml", environ={"VISITS_FETCH_TIMEOUT": "quince"})
    assert "quince" in info.value.message
