"""Tabular report of recent Harvest time entries."""

from __future__ import annotations

import math
import sys
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, TextIO

from clockhand.client import HarvestClient
from clockhand.errors import RemoteQueryFailed

__all__ = [
    "decimal_hours_to_string",
    "format_report",
    "print_report",
    "start_of_last_week",
    "strip_newlines_and_tabs",
    "truncate_with_ellipsis",
]

NOTES_WIDTH = 60
REPORT_PAGE_SIZE = 200
MIN_CELL_WIDTH = 2
CELL_PADDING = 2


def strip_newlines_and_tabs(s: str) -> str:
    """Remove newlines and tabs so a value fits in one table cell."""
    return s.replace("\t", "").replace("\r", "").replace("\n", "")


def truncate_with_ellipsis(s: str, length: int) -> str:
    """Truncate ``s`` on a word boundary to at most ``length`` characters, plus ``…``.

    >>> truncate_with_ellipsis("fix the flaky watcher test", 12)
    'fix the…'
    """
    truncated = ""
    for word in s.split():
        candidate = f"{truncated} {word}" if truncated else word
        if len(candidate) > length:
            return truncated + "…"
        truncated = candidate
    return truncated


def decimal_hours_to_string(decimal_hours: float) -> str:
    """Format decimal hours as ``HHh MMm``.

    Entries under an hour keep the column width but omit the hour field.

    >>> decimal_hours_to_string(1.5)
    '01h 30m'
    >>> decimal_hours_to_string(0.25)
    '    15m'
    """
    hours = math.floor(decimal_hours)
    minutes = round((decimal_hours - hours) * 60)
    if minutes == 60:
        hours += 1
        minutes = 0
    if hours == 0:
        return f"    {minutes:02d}m"
    return f"{hours:02d}h {minutes:02d}m"


def start_of_last_week(today: date) -> date:
    """Return the Monday of the ISO week before ``today``'s."""
    start_of_week = today - timedelta(days=today.weekday())
    return start_of_week - timedelta(weeks=1)


def _row(entry: Dict[str, Any]) -> List[str]:
    project = entry.get("project") or {}
    if not isinstance(project, dict):
        raise RemoteQueryFailed(f"Time entry {entry.get('id')} has a malformed project")
    hours = entry.get("hours") or 0.0
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise RemoteQueryFailed(f"Time entry {entry.get('id')} has non-numeric hours: {hours!r}")
    notes = entry.get("notes") or "(none)"
    return [
        str(entry.get("spent_date", "")),
        str(project.get("id", "")),
        strip_newlines_and_tabs(str(project.get("name", ""))),
        decimal_hours_to_string(float(hours)),
        truncate_with_ellipsis(str(notes), NOTES_WIDTH),
    ]


def format_report(entries: Iterable[Dict[str, Any]]) -> str:
    """Render time entries as aligned columns.

    Each column is padded to its widest cell plus two spaces; the last column
    is not padded.

    Raises:
        RemoteQueryFailed: If an entry has a malformed project or non-numeric hours.
    """
    rows = [_row(entry) for entry in entries]
    if not rows:
        return ""

    widths = [
        max(MIN_CELL_WIDTH, max(len(row[i]) for row in rows)) + CELL_PADDING
        for i in range(len(rows[0]) - 1)
    ]
    lines = []
    for row in rows:
        cells = [cell.ljust(width) for cell, width in zip(row, widths)]
        cells.append(row[-1])
        lines.append("".join(cells).rstrip())
    return "\n".join(lines) + "\n"


def print_report(
    client: HarvestClient,
    today: Optional[date] = None,
    out: Optional[TextIO] = None,
) -> None:
    """Print the user's time entries since the start of last week.

    Raises:
        RemoteQueryFailed: If Harvest cannot be queried.
    """
    if today is None:
        today = date.today()
    me = client.get_current_user()
    entries = client.list_time_entries(
        me["id"],
        per_page=REPORT_PAGE_SIZE,
        from_date=start_of_last_week(today).isoformat(),
    )
    (out or sys.stdout).write(format_report(entries))
