"""Harvest API client and timer status classification."""

from __future__ import annotations

import enum
import logging
from typing import Any, Dict, List, Optional

import requests

from clockhand import __version__
from clockhand.config import DEFAULT_API_BASE_URL, AccessCredentials
from clockhand.errors import RemoteQueryFailed
from clockhand.projects import Project

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["HarvestClient", "TimerStatus", "TimerStatusOracle"]

DEFAULT_REQUEST_TIMEOUT = 10.0


class TimerStatus(enum.Enum):
    """Running timer state relative to one project."""

    RUNNING = "running"
    NOT_RUNNING = "not_running"
    RUNNING_FOR_OTHER_PROJECT = "running_for_other_project"


class HarvestClient:
    """Read-only wrapper around the Harvest v2 REST API.

    Authentication uses a personal access token (``Authorization: Bearer``) and
    the ``Harvest-Account-Id`` header. Every request carries a timeout so a slow
    server cannot stall the watch loop indefinitely.
    """

    __slots__ = ("base_url", "timeout", "session")

    def __init__(
        self,
        credentials: AccessCredentials,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {credentials.token}",
                "Harvest-Account-Id": str(credentials.account_id),
                "User-Agent": f"clockhand/{__version__}",
                "Accept": "application/json",
            }
        )

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug(f"GET {url} params={params}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise RemoteQueryFailed(f"Harvest request to {endpoint} failed: {e}") from e
        except ValueError as e:
            raise RemoteQueryFailed(f"Harvest returned invalid JSON for {endpoint}: {e}") from e

        if not isinstance(payload, dict):
            raise RemoteQueryFailed(f"Harvest returned an unexpected payload for {endpoint}")
        return payload

    def get_current_user(self) -> Dict[str, Any]:
        """Return the currently authenticated user (``GET /users/me``)."""
        user = self._get("users/me")
        if not isinstance(user.get("id"), int):
            raise RemoteQueryFailed("Harvest user payload has no integer 'id'")
        return user

    def list_time_entries(
        self,
        user_id: int,
        per_page: Optional[int] = None,
        is_running: Optional[bool] = None,
        from_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return time entries for ``user_id`` (``GET /time_entries``).

        Args:
            user_id (int): Harvest user id.
            per_page (Optional[int]): Page size (1-2000).
            is_running (Optional[bool]): Only running (True) or stopped (False) entries.
            from_date (Optional[str]): ISO date; only entries spent on or after it.

        Returns:
            List[Dict[str, Any]]: The ``time_entries`` of the first page, newest first.

        Raises:
            RemoteQueryFailed: On network errors, non-2xx responses or bad payloads.
        """
        params: Dict[str, Any] = {"user_id": user_id}
        if per_page is not None:
            params["per_page"] = per_page
        if is_running is not None:
            params["is_running"] = "true" if is_running else "false"
        if from_date is not None:
            params["from"] = from_date

        payload = self._get("time_entries", params=params)
        entries = payload.get("time_entries")
        if not isinstance(entries, list):
            raise RemoteQueryFailed("Harvest time entries payload has no 'time_entries' list")
        if not all(isinstance(entry, dict) for entry in entries):
            raise RemoteQueryFailed("Harvest time entries payload contains a non-object entry")
        return entries

    def close(self) -> None:
        self.session.close()


class TimerStatusOracle:
    """Classify the user's running timer relative to a project.

    Every check queries Harvest afresh; timers can be started or stopped from
    other devices at any time.
    """

    def __init__(self, client: HarvestClient) -> None:
        self.client = client

    def check(self, project: Project) -> TimerStatus:
        """Return the timer status for ``project``.

        Raises:
            RemoteQueryFailed: If either Harvest request fails.
        """
        me = self.client.get_current_user()
        running = self.client.list_time_entries(me["id"], per_page=1, is_running=True)
        if not running:
            return TimerStatus.NOT_RUNNING

        timer_project = running[0].get("project") or {}
        timer_project_id = timer_project.get("id") if isinstance(timer_project, dict) else None
        if timer_project_id is None:
            raise RemoteQueryFailed("Running time entry has no project id")

        if timer_project_id == project.id:
            return TimerStatus.RUNNING
        logger.debug(
            f"Running timer is for project {timer_project_id}, not {project.name} ({project.id})"
        )
        return TimerStatus.RUNNING_FOR_OTHER_PROJECT
