"""Tests for runtime settings resolution (CLI > env > YAML > default)."""

import pytest

from copyrc.config import Settings, load_settings, validate_settings
from copyrc.providers.github import DEFAULT_API_URL

_ENV_VARS = (
    "GITHUB_TOKEN",
    "COPYRC_API_URL",
    "COPYRC_CONCURRENCY",
    "COPYRC_TIMEOUT",
    "COPYRC_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_defaults(self):
        settings = load_settings()
        assert settings == Settings()
        assert settings.api_url == DEFAULT_API_URL

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("COPYRC_API_URL", "https://ghe.example.com/api/v3/")
        monkeypatch.setenv("COPYRC_CONCURRENCY", "8")
        monkeypatch.setenv("COPYRC_TIMEOUT", "5.5")
        monkeypatch.setenv("COPYRC_DEBUG", "yes")

        settings = load_settings()

        assert settings.github_token == "ghp_env"
        assert settings.api_url == "https://ghe.example.com/api/v3"
        assert settings.concurrency == 8
        assert settings.timeout == 5.5
        assert settings.debug is True

    def test_cli_beats_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("COPYRC_CONCURRENCY", "8")
        settings = load_settings(token="ghp_cli", concurrency=2)
        assert settings.github_token == "ghp_cli"
        assert settings.concurrency == 2

    def test_yaml_fallback(self, monkeypatch):
        assert load_settings(yaml_fallbacks={"concurrency": 12}).concurrency == 12
        monkeypatch.setenv("COPYRC_CONCURRENCY", "3")
        assert load_settings(yaml_fallbacks={"concurrency": 12}).concurrency == 3

    def test_malformed_env_number(self, monkeypatch):
        monkeypatch.setenv("COPYRC_CONCURRENCY", "many")
        with pytest.raises(ValueError, match="COPYRC_CONCURRENCY"):
            load_settings()


class TestValidateSettings:
    """Tests for validate_settings()."""

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"api_url": "ftp://x"}, "http"),
            ({"api_url": "https://"}, "hostname"),
            ({"concurrency": 0}, "concurrency"),
            ({"concurrency": 100}, "concurrency"),
            ({"timeout": 0}, "timeout"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            validate_settings(Settings(**kwargs))

    def test_strips_trailing_slash(self):
        settings = Settings(api_url=" https://api.github.com/ ")
        validate_settings(settings)
        assert settings.api_url == "https://api.github.com"
