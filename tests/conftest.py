from pathlib import Path
import json
from typing import Any, Callable, Dict, Generator
from unittest.mock import MagicMock, patch

import pytest

from clockhand.client import HarvestClient, TimerStatusOracle
from clockhand.config import AccessCredentials, Config
from clockhand.notifier import NotificationDispatcher
from clockhand.projects import Project, ProjectRegistry


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config directory at an empty temp dir and clear CLOCKHAND_* env vars."""
    config_home = tmp_path / "xdg"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    for var in (
        "CLOCKHAND_INTERVAL",
        "CLOCKHAND_LOG_LEVEL",
        "CLOCKHAND_LOG_FILE",
        "CLOCKHAND_REQUEST_TIMEOUT",
        "CLOCKHAND_SOUND",
        "CLOCKHAND_API_BASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    return config_home


@pytest.fixture
def credentials() -> AccessCredentials:
    return AccessCredentials(token="secret-token", account_id=456)


@pytest.fixture
def mock_config() -> Config:
    """Fixture for a default Config object."""
    return Config(
        interval=60.0,
        log_level="INFO",
        log_file=None,
        request_timeout=10.0,
        sound_name="Sosumi",
        api_base_url="https://api.harvestapp.com/v2",
    )


@pytest.fixture
def write_descriptor() -> Callable[..., Path]:
    """Write a clockhand.json descriptor and return its path."""
    def _write(directory: Path, project_id: Any = 42, name: Any = "Alpha", filename: str = "clockhand.json") -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_text(json.dumps({"harvest_project_id": project_id, "name": name}), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def alpha() -> Project:
    return Project(id=42, name="Alpha", root=Path("/p/alpha"))


@pytest.fixture
def beta() -> Project:
    return Project(id=99, name="Beta", root=Path("/p/beta"))


@pytest.fixture
def registry(alpha: Project, beta: Project) -> ProjectRegistry:
    return ProjectRegistry([alpha, beta])


@pytest.fixture
def mock_oracle() -> MagicMock:
    return MagicMock(spec=TimerStatusOracle)


@pytest.fixture
def mock_notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def dispatcher(mock_notifier: MagicMock) -> NotificationDispatcher:
    return NotificationDispatcher(mock_notifier, sound="Sosumi")


@pytest.fixture
def mock_session() -> MagicMock:
    """A requests.Session stand-in with a real headers dict."""
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def harvest_responses(mock_session: MagicMock) -> Callable[[Dict[str, Any]], None]:
    """Route mock session GETs to payloads keyed by endpoint suffix."""
    def _route(payloads: Dict[str, Any]) -> None:
        def _get(url: str, params: Any = None, timeout: Any = None) -> MagicMock:
            response = MagicMock()
            for suffix, payload in payloads.items():
                if url.endswith(suffix):
                    response.json.return_value = payload
                    return response
            raise AssertionError(f"unexpected request to {url}")
        mock_session.get.side_effect = _get
    return _route


@pytest.fixture
def harvest_client(credentials: AccessCredentials, mock_session: MagicMock) -> HarvestClient:
    return HarvestClient(credentials, session=mock_session)


@pytest.fixture
def mock_observer() -> MagicMock:
    """Fixture for a watchdog Observer stand-in."""
    observer = MagicMock()
    observer.is_alive.return_value = True
    return observer


@pytest.fixture
def mock_signal() -> Generator[MagicMock, None, None]:
    """Fixture for mocking signal.signal."""
    with patch("signal.signal") as mock:
        yield mock
