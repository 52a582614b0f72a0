"""Tests for configuration management."""

from pathlib import Path

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_available_providers,
    get_environment,
    get_environment_info,
    get_state_path,
    get_window_ms,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("IDPHOTO_RATE_LIMIT_MAX", raising=False)
        assert get_environment(EnvVar.RATE_LIMIT_MAX) == 5

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("IDPHOTO_MAX_ATTEMPTS", "9")
        assert get_environment(EnvVar.MAX_ATTEMPTS, override=2) == 2

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("IDPHOTO_MAX_ATTEMPTS", "7")
        result = get_environment(EnvVar.MAX_ATTEMPTS)
        assert result == 7
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Float type conversion from string."""
        monkeypatch.setenv("IDPHOTO_RATE_LIMIT_WINDOW_SECONDS", "90.5")
        assert get_environment(EnvVar.RATE_LIMIT_WINDOW_SECONDS) == 90.5

    @pytest.mark.unit
    def test_invalid_int_falls_back_to_default(self, monkeypatch):
        """Unparseable integers resolve to the default."""
        monkeypatch.setenv("IDPHOTO_RATE_LIMIT_MAX", "many")
        assert get_environment(EnvVar.RATE_LIMIT_MAX) == 5

    @pytest.mark.unit
    def test_path_type_conversion(self, monkeypatch, tmp_path):
        """Path variables come back as Path objects."""
        monkeypatch.setenv("IDPHOTO_STATE_PATH", str(tmp_path / "q.db"))
        assert get_environment(EnvVar.STATE_PATH) == tmp_path / "q.db"


class TestConvenienceFunctions:
    """Tests for derived configuration helpers."""

    @pytest.mark.unit
    def test_window_ms_default(self, monkeypatch):
        """Default window is ten minutes."""
        monkeypatch.delenv("IDPHOTO_RATE_LIMIT_WINDOW_SECONDS", raising=False)
        assert get_window_ms() == 600_000

    @pytest.mark.unit
    def test_window_ms_override(self):
        assert get_window_ms(override=1.5) == 1500

    @pytest.mark.unit
    def test_state_path_override(self, tmp_path):
        assert get_state_path(tmp_path / "x.db") == tmp_path / "x.db"

    @pytest.mark.unit
    def test_state_path_default_in_home(self, monkeypatch):
        monkeypatch.delenv("IDPHOTO_STATE_PATH", raising=False)
        assert get_state_path() == Path.home() / ".idphoto" / "state.db"

    @pytest.mark.unit
    def test_available_providers(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert get_available_providers() == ["google"]


class TestIntrospection:
    """Tests for metadata helpers."""

    @pytest.mark.unit
    def test_environment_info(self):
        info = get_environment_info(EnvVar.PROVIDER)
        assert isinstance(info, EnvConfig)
        assert info.name == "IDPHOTO_PROVIDER"
        assert info.default == "google"

    @pytest.mark.unit
    def test_list_by_category(self):
        quota_vars = list_environment_variables("quota")
        assert EnvVar.RATE_LIMIT_MAX in quota_vars
        assert EnvVar.GOOGLE_API_KEY not in quota_vars

    @pytest.mark.unit
    def test_list_all(self):
        assert len(list_environment_variables()) == len(EnvVar)
