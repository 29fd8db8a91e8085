"""Explicitly constructed runtime context shared by the CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from clockhand.client import HarvestClient, TimerStatusOracle
from clockhand.config import AccessCredentials, Config, load_credentials
from clockhand.notifier import DesktopNotifier, NotificationDispatcher

__all__ = ["AppContext"]


@dataclass
class AppContext:
    """Settings, credentials and the services built from them.

    Commands receive an ``AppContext`` instead of reading global state, so
    tests can build one around fakes.
    """

    config: Config
    credentials: AccessCredentials
    client: HarvestClient
    notifier: DesktopNotifier

    @classmethod
    def build(
        cls,
        config: Config,
        credentials: Optional[AccessCredentials] = None,
        notifier: Optional[DesktopNotifier] = None,
    ) -> AppContext:
        """Build a context, reading credentials from disk if not given.

        Raises:
            ConfigNotFound: If the credentials file is missing.
            ConfigMalformed: If the credentials file is invalid.
        """
        if credentials is None:
            credentials = load_credentials()
        client = HarvestClient(
            credentials,
            base_url=config.api_base_url,
            timeout=config.request_timeout,
        )
        return cls(
            config=config,
            credentials=credentials,
            client=client,
            notifier=notifier or DesktopNotifier(),
        )

    @property
    def oracle(self) -> TimerStatusOracle:
        return TimerStatusOracle(self.client)

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return NotificationDispatcher(self.notifier, sound=self.config.sound_name)

    def close(self) -> None:
        self.client.close()
