from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from clockhand.config import AccessCredentials, config_dir, load_config, load_credentials
from clockhand.errors import ConfigMalformed, ConfigNotFound

if TYPE_CHECKING:
    from pytest import LogCaptureFixture


def test_defaults() -> None:
    config = load_config({})
    assert config.interval == 60.0
    assert config.log_level == "INFO"
    assert config.log_file is None
    assert config.request_timeout == 10.0
    assert config.sound_name == "Sosumi"
    assert config.api_base_url == "https://api.harvestapp.com/v2"


def test_config_dir_uses_xdg(isolated_config_home: Path) -> None:
    assert config_dir() == isolated_config_home / "clockhand"


def test_config_dir_falls_back_to_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert config_dir() == tmp_path / ".config" / "clockhand"


def test_priority_cli_over_env_over_file(isolated_config_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    app_dir = isolated_config_home / "clockhand"
    app_dir.mkdir()
    (app_dir / "config.toml").write_text(
        '[clockhand]\ninterval = 30\nsound_name = "Ping"\nrequest_timeout = 3\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("CLOCKHAND_INTERVAL", "20")
    monkeypatch.setenv("CLOCKHAND_SOUND", "Glass")

    config = load_config({"interval": 5})

    assert config.interval == 5.0
    assert config.sound_name == "Glass"
    assert config.request_timeout == 3.0


def test_none_cli_values_do_not_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOCKHAND_INTERVAL", "15")
    config = load_config({"interval": None, "log_level": None})
    assert config.interval == 15.0
    assert config.log_level == "INFO"


def test_unknown_cli_keys_are_ignored() -> None:
    config = load_config({"command": "watch", "project_config_paths": ["x"], "debug": False})
    assert not hasattr(config, "command")


def test_debug_flag_forces_debug_level() -> None:
    assert load_config({"debug": True, "log_level": "warning"}).log_level == "DEBUG"


def test_log_level_is_uppercased() -> None:
    assert load_config({"log_level": "warning"}).log_level == "WARNING"


@pytest.mark.parametrize(
    "args,message",
    [
        ({"interval": 0}, "interval must be positive"),
        ({"interval": "soon"}, "Invalid float for interval"),
        ({"request_timeout": -1}, "request_timeout must be positive"),
        ({"log_level": "LOUD"}, "Invalid log level"),
    ],
    ids=["zero interval", "non-numeric interval", "negative timeout", "bad log level"],
)
def test_invalid_values(args: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        load_config(args)


def test_malformed_config_file_is_ignored(isolated_config_home: Path, caplog: LogCaptureFixture) -> None:
    app_dir = isolated_config_home / "clockhand"
    app_dir.mkdir()
    (app_dir / "config.toml").write_text("[clockhand\ninterval = ", encoding="utf-8")

    with caplog.at_level(logging.ERROR):
        config = load_config({})

    assert config.interval == 60.0
    assert "Failed to parse config file" in caplog.text


def test_explicit_config_path(tmp_path: Path) -> None:
    path = tmp_path / "custom.toml"
    path.write_text('[clockhand]\nlog-level = "debug"\n', encoding="utf-8")
    assert load_config({}, config_path=path).log_level == "DEBUG"


def test_log_file_is_made_absolute(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config({"log_file": "clockhand.log"})
    assert config.log_file == str(tmp_path / "clockhand.log")


def test_api_base_url_trailing_slash_stripped() -> None:
    config = load_config({"api_base_url": "https://example.test/v2/"})
    assert config.api_base_url == "https://example.test/v2"


def test_load_credentials(isolated_config_home: Path) -> None:
    app_dir = isolated_config_home / "clockhand"
    app_dir.mkdir()
    (app_dir / "access-token.json").write_text(
        json.dumps({"token": "abc", "account_id": 456}), encoding="utf-8"
    )
    assert load_credentials() == AccessCredentials(token="abc", account_id=456)


def test_load_credentials_missing_explains_setup(isolated_config_home: Path) -> None:
    with pytest.raises(ConfigNotFound) as excinfo:
        load_credentials()
    message = str(excinfo.value)
    assert str(isolated_config_home / "clockhand" / "access-token.json") in message
    assert "https://id.getharvest.com/developers" in message
    assert '"account_id": 456' in message


@pytest.mark.parametrize(
    "contents",
    [
        "not json",
        "[]",
        '{"account_id": 456}',
        '{"token": "", "account_id": 456}',
        '{"token": "abc", "account_id": "456"}',
        '{"token": "abc", "account_id": true}',
    ],
    ids=["invalid json", "not an object", "missing token", "empty token", "string account", "bool account"],
)
def test_load_credentials_malformed(tmp_path: Path, contents: str) -> None:
    path = tmp_path / "access-token.json"
    path.write_text(contents, encoding="utf-8")
    with pytest.raises(ConfigMalformed, match="bad format"):
        load_credentials(path)


def test_credentials_repr_hides_token() -> None:
    assert "secret" not in repr(AccessCredentials(token="secret", account_id=1))
