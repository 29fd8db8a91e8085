"""Configuration management for clockhand.

This module loads runtime settings from defaults, the config file, environment
variables and CLI arguments, and reads the Harvest access credentials.

The settings are aggregated into a :class:`Config` dataclass, which serves as the
single source of truth for application settings. Credentials are kept apart in
:class:`AccessCredentials` and are never logged.

Priority Order:
    1. CLI Arguments
    2. Environment Variables
    3. Config File (``<config_dir>/config.toml``, table ``[clockhand]``)
    4. Defaults

Supported Environment Variables:
    * ``CLOCKHAND_INTERVAL``: Minimum seconds between timer checks.
    * ``CLOCKHAND_LOG_LEVEL``: Logging level.
    * ``CLOCKHAND_LOG_FILE``: Path to the log file.
    * ``CLOCKHAND_REQUEST_TIMEOUT``: Timeout in seconds for Harvest API requests.
    * ``CLOCKHAND_SOUND``: Sound name played with notifications.
    * ``CLOCKHAND_API_BASE_URL``: Harvest API base URL.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import tomli

from clockhand.errors import ConfigMalformed, ConfigNotFound

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "AccessCredentials",
    "Config",
    "DEFAULT_API_BASE_URL",
    "config_dir",
    "load_config",
    "load_credentials",
]

APP_NAME = "clockhand"
CREDENTIALS_FILENAME = "access-token.json"
CONFIG_FILENAME = "config.toml"
DEFAULT_API_BASE_URL = "https://api.harvestapp.com/v2"

CREDENTIALS_HELP = """didn't find the credentials config file at {path}

1. Visit https://id.getharvest.com/developers
2. Create a new personal access token
3. Write JSON like {{"token": "123...", "account_id": 456}} into this file: {path}"""


@dataclass
class Config:
    """Define the application configuration structure.

    Attributes:
        interval (float): Minimum seconds between two timer checks. Defaults to 60.0.
        log_level (str): Logging level (e.g., INFO, DEBUG). Defaults to "INFO".
        log_file (Optional[str]): Absolute path to the log file. Defaults to None.
        request_timeout (float): Timeout in seconds for each Harvest request. Defaults to 10.0.
        sound_name (Optional[str]): Sound played with notifications. Defaults to "Sosumi".
        api_base_url (str): Harvest API base URL.
    """

    interval: float
    log_level: str
    log_file: Optional[str]
    request_timeout: float
    sound_name: Optional[str]
    api_base_url: str


@dataclass(frozen=True)
class AccessCredentials:
    """Harvest personal access token and the account it belongs to."""

    token: str
    account_id: int

    def __repr__(self) -> str:
        return f"AccessCredentials(token='***', account_id={self.account_id})"


def config_dir() -> Path:
    """Return the per-user configuration directory for clockhand.

    Uses ``$XDG_CONFIG_HOME/clockhand`` when the variable is set, otherwise
    ``~/.config/clockhand``.

    Returns:
        Path: The configuration directory (not necessarily existing).
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(os.path.expanduser(xdg_config_home)) / APP_NAME
    return Path(os.path.expanduser("~")) / ".config" / APP_NAME


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Read the ``[clockhand]`` table from a TOML config file.

    A malformed file is logged and ignored so a typo does not prevent startup.
    """
    if not path.is_file():
        return {}
    logger.debug(f"Loading config from {path}")
    try:
        with path.open("rb") as f:
            data = tomli.load(f)
    except (tomli.TOMLDecodeError, OSError) as e:
        logger.error(f"Failed to parse config file {path}: {e}")
        return {}
    table = data.get(APP_NAME, {})
    if not isinstance(table, dict):
        logger.error(f"Config file {path}: [{APP_NAME}] must be a table")
        return {}
    return {k.replace("-", "_"): v for k, v in table.items()}


def _positive_float(name: str, value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid float for {name}: {value}") from e
    if result <= 0:
        raise ValueError(f"{name} must be positive, got {result}")
    return result


def load_config(args: Dict[str, Any], config_path: Optional[Path] = None) -> Config:
    """Load and validate configuration with strict priority, returning a Config object.

    Args:
        args (Dict[str, Any]): Parsed CLI arguments, typically ``vars(parser.parse_args())``.
            Keys should match Config attributes. Values of None are ignored so that
            lower-priority sources take effect. Unknown keys are dropped.
        config_path (Optional[Path]): Config file to read. Defaults to
            ``config_dir() / "config.toml"``.

    Returns:
        Config: The fully resolved and validated configuration object.

    Raises:
        ValueError: If a numeric value is invalid or the log level is unknown.

    Examples:
        >>> from clockhand.config import load_config
        >>> load_config({"interval": 5}).interval
        5.0
    """
    # 1. Defaults
    config_values: Dict[str, Any] = {
        "interval": 60.0,
        "log_level": "INFO",
        "log_file": None,
        "request_timeout": 10.0,
        "sound_name": "Sosumi",
        "api_base_url": DEFAULT_API_BASE_URL,
    }

    # 2. Config File
    if config_path is None:
        config_path = config_dir() / CONFIG_FILENAME
    for key, value in _read_config_file(config_path).items():
        if value is not None and value != "":
            config_values[key] = value

    # 3. Environment Variables
    env_map = {
        "CLOCKHAND_INTERVAL": "interval",
        "CLOCKHAND_LOG_LEVEL": "log_level",
        "CLOCKHAND_LOG_FILE": "log_file",
        "CLOCKHAND_REQUEST_TIMEOUT": "request_timeout",
        "CLOCKHAND_SOUND": "sound_name",
        "CLOCKHAND_API_BASE_URL": "api_base_url",
    }
    for env_var, config_key in env_map.items():
        val = os.getenv(env_var)
        if val is not None and val != "":
            config_values[config_key] = val

    # 4. CLI Arguments (override if not None)
    for key, value in args.items():
        if value is not None:
            config_values[key] = value

    config_values["interval"] = _positive_float("interval", config_values["interval"])
    config_values["request_timeout"] = _positive_float(
        "request_timeout", config_values["request_timeout"]
    )

    if config_values["log_file"]:
        config_values["log_file"] = str(Path(os.path.expanduser(str(config_values["log_file"]))).absolute())

    if args.get("debug"):
        config_values["log_level"] = "DEBUG"

    config_values["log_level"] = str(config_values["log_level"]).upper()
    if not isinstance(getattr(logging, config_values["log_level"], None), int):
        raise ValueError(f"Invalid log level: {config_values['log_level']}")

    config_values["api_base_url"] = str(config_values["api_base_url"]).rstrip("/")

    # Filter out keys that are not in Config fields (e.g. 'debug', 'command' from CLI)
    config_fields = {f.name for f in fields(Config)}
    filtered_values = {k: v for k, v in config_values.items() if k in config_fields}

    return Config(**filtered_values)


def load_credentials(path: Optional[Path] = None) -> AccessCredentials:
    """Read the Harvest access token file.

    Args:
        path (Optional[Path]): Credentials file. Defaults to
            ``config_dir() / "access-token.json"``.

    Returns:
        AccessCredentials: The token and account id.

    Raises:
        ConfigNotFound: If the file does not exist or cannot be read. The message
            explains how to create it.
        ConfigMalformed: If the file is not a JSON object with a string ``token``
            and an integer ``account_id``.
    """
    if path is None:
        path = config_dir() / CREDENTIALS_FILENAME

    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigNotFound(CREDENTIALS_HELP.format(path=path)) from e

    try:
        data = json.loads(contents)
    except json.JSONDecodeError as e:
        raise ConfigMalformed(f"bad format for {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigMalformed(f"bad format for {path}: expected a JSON object")

    token = data.get("token")
    account_id = data.get("account_id")
    if not isinstance(token, str) or not token:
        raise ConfigMalformed(f"bad format for {path}: 'token' must be a non-empty string")
    if isinstance(account_id, bool) or not isinstance(account_id, int):
        raise ConfigMalformed(f"bad format for {path}: 'account_id' must be an integer")

    return AccessCredentials(token=token, account_id=account_id)
