from __future__ import annotations

import logging
from pathlib import Path

import pytest

from userdir.config import StoreSettings, load_settings_file, load_store_settings


def test_environment_values_are_read(tmp_path: Path) -> None:
    settings = load_store_settings(
        {
            "USERDIR_CONFIG": str(tmp_path / "absent.yaml"),
            "USERDIR_STORE_URL": " https://project.example.co ",
            "USERDIR_STORE_KEY": "anon-key",
        }
    )

    assert settings == StoreSettings(url="https://project.example.co", key="anon-key", table="users")


def test_hosted_variable_names_are_accepted(tmp_path: Path) -> None:
    settings = load_store_settings(
        {
            "USERDIR_CONFIG": str(tmp_path / "absent.yaml"),
            "SUPABASE_URL": "https://project.example.co",
            "SUPABASE_ANON_KEY": "anon-key",
        }
    )

    assert settings.url == "https://project.example.co"
    assert settings.key == "anon-key"


def test_missing_values_are_logged_not_enforced(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="userdir.config"):
        settings = load_store_settings({"USERDIR_CONFIG": str(tmp_path / "absent.yaml")})

    assert settings.url is None
    assert settings.key is None
    assert "not configured" in caplog.text


def test_file_values_are_overridden_by_environment(tmp_path: Path) -> None:
    config_path = tmp_path / "userdir.yaml"
    config_path.write_text(
        "store:\n  url: sqlite:///data/users.sqlite3\n  key: file-key\n  table: members\n",
        encoding="utf-8",
    )

    settings = load_store_settings(
        {
            "USERDIR_CONFIG": str(config_path),
            "USERDIR_STORE_KEY": "env-key",
        }
    )

    assert settings.url == "sqlite:///data/users.sqlite3"
    assert settings.key == "env-key"
    assert settings.table == "members"


def test_settings_file_rejects_unknown_fields(tmp_path: Path) -> None:
    config_path = tmp_path / "userdir.yaml"
    config_path.write_text("store:\n  url: x\n  password: nope\n", encoding="utf-8")

    with pytest.raises(ValueError, match="password"):
        load_settings_file(config_path)


def test_describe_redacts_values() -> None:
    summary = StoreSettings(url="https://project.example.co", key="secret").describe()

    assert summary == {"url": "configured", "key": "configured", "table": "users"}
    assert "secret" not in str(summary)
