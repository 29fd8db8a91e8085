"""Desktop notifications for timer status.

On macOS notifications go through ``osascript`` so a sound can be attached;
elsewhere they go through :mod:`plyer`. Delivery failures are raised as
:class:`~clockhand.errors.NotificationDeliveryFailed`, never swallowed, so a
misconfigured desktop shows up in the logs.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from datetime import datetime
from email.utils import format_datetime
from typing import Optional

from plyer import notification

from clockhand.client import TimerStatus
from clockhand.errors import NotificationDeliveryFailed
from clockhand.projects import Project

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["DesktopNotifier", "NotificationDispatcher", "send_test_notification"]

APP_NAME = "clockhand"
DEFAULT_SOUND = "Sosumi"

SUMMARIES = {
    TimerStatus.NOT_RUNNING: "Timer not running",
    TimerStatus.RUNNING_FOR_OTHER_PROJECT: "Timer running for other project",
}


def _applescript_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class DesktopNotifier:
    """Platform notification surface."""

    def __init__(self, platform: Optional[str] = None, timeout: int = 10) -> None:
        self.platform = platform or sys.platform
        self.timeout = timeout

    def show(self, summary: str, body: str, sound: Optional[str] = None) -> None:
        """Show one notification.

        Raises:
            NotificationDeliveryFailed: If the platform rejects the notification.
        """
        if self.platform == "darwin":
            self._show_osascript(summary, body, sound)
        else:
            self._show_plyer(summary, body)

    def _show_osascript(self, summary: str, body: str, sound: Optional[str]) -> None:
        script = (
            f"display notification {_applescript_string(body)} "
            f"with title {_applescript_string(summary)}"
        )
        if sound:
            script += f" sound name {_applescript_string(sound)}"
        try:
            subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", "replace").strip()
            raise NotificationDeliveryFailed(
                f"osascript exited with status {e.returncode}: {stderr}"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise NotificationDeliveryFailed(f"Could not run osascript: {e}") from e

    def _show_plyer(self, summary: str, body: str) -> None:
        try:
            notification.notify(
                title=summary,
                message=body,
                app_name=APP_NAME,
                timeout=self.timeout,
            )
        except Exception as e:
            # plyer raises NotImplementedError without a backend, and backend
            # specific errors (dbus, subprocess) otherwise.
            raise NotificationDeliveryFailed(f"Desktop notification failed: {e}") from e


class NotificationDispatcher:
    """Turn a :class:`TimerStatus` into at most one notification.

    Does not rate limit; the watch loop's debouncer does that upstream.
    """

    def __init__(self, notifier: DesktopNotifier, sound: Optional[str] = DEFAULT_SOUND) -> None:
        self.notifier = notifier
        self.sound = sound

    def dispatch(self, status: TimerStatus, project: Project) -> bool:
        """Notify about ``status`` for ``project``.

        Returns:
            bool: True if a notification was shown, False for ``RUNNING``.

        Raises:
            NotificationDeliveryFailed: If the notification surface fails.
        """
        if status is TimerStatus.RUNNING:
            logger.debug(f"Timer running for {project.name}, nothing to do")
            return False

        summary = SUMMARIES[status]
        body = f"Start a timer for {project.name}"
        self.notifier.show(summary, body, self.sound)
        logger.info(f"Notified: {summary} ({project.name})")
        return True


def send_test_notification(notifier: DesktopNotifier, sound: Optional[str] = DEFAULT_SOUND) -> None:
    """Show a notification to check that the desktop surface works.

    Raises:
        NotificationDeliveryFailed: If the notification surface fails.
    """
    now = format_datetime(datetime.now().astimezone())
    notifier.show(
        f"Test notification from {APP_NAME}",
        f"This is a test notification at {now}",
        sound,
    )
