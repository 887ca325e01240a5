from __future__ import annotations

from pathlib import Path

import pytest

from userdir.config import (
    DEFAULT_API_URL,
    ConfigurationError,
    Settings,
    load_settings,
    resolve_config_path,
)


def test_defaults_without_file_or_environment(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml", environ={})

    assert settings == Settings()
    assert settings.api_url == DEFAULT_API_URL
    assert settings.timeout is None
    assert settings.log_level == "INFO"


def test_values_are_read_from_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "userdir.yaml"
    config_path.write_text(
        "api_url: https://directory.example.com/users/\n"
        "timeout: 2.5\n"
        "log_level: debug\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path, environ={})

    assert settings.api_url == "https://directory.example.com/users"
    assert settings.timeout == 2.5
    assert settings.log_level == "DEBUG"


def test_environment_overrides_file(tmp_path: Path) -> None:
    config_path = tmp_path / "userdir.yaml"
    config_path.write_text("api_url: https://file.example.com/users\ntimeout: 5\n", encoding="utf-8")

    settings = load_settings(
        config_path,
        environ={
            "USERDIR_API_URL": "http://localhost:8000/users",
            "USERDIR_TIMEOUT": "none",
            "USERDIR_LOG_LEVEL": "warning",
        },
    )

    assert settings.api_url == "http://localhost:8000/users"
    assert settings.timeout is None
    assert settings.log_level == "WARNING"


@pytest.mark.parametrize(
    "data",
    [
        {"api_url": ""},
        {"api_url": "ftp://example.com/users"},
        {"timeout": "soon"},
        {"timeout": 0},
        {"log_level": "chatty"},
        {"retries": 3},
    ],
)
def test_invalid_settings_are_rejected(data) -> None:
    with pytest.raises(ConfigurationError):
        Settings.from_dict(data)


def test_non_mapping_file_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "userdir.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config_path, environ={})


def test_with_overrides_normalises_url() -> None:
    settings = Settings().with_overrides(api_url="http://localhost:8000/users/")
    assert settings.api_url == "http://localhost:8000/users"
    assert Settings().with_overrides() == Settings()


def test_resolve_config_path_prefers_environment(tmp_path: Path, monkeypatch) -> None:
    explicit = resolve_config_path(str(tmp_path / "custom.yaml"))
    assert explicit == (tmp_path / "custom.yaml").resolve()

    monkeypatch.chdir(tmp_path)
    assert resolve_config_path(None) == (tmp_path / "userdir.yaml").resolve()
