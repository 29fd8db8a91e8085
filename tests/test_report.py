from __future__ import annotations

import io
from datetime import date
from typing import Any, Callable, Dict
from unittest.mock import MagicMock

import pytest

from clockhand.client import HarvestClient
from clockhand.errors import RemoteQueryFailed
from clockhand.report import (
    decimal_hours_to_string,
    format_report,
    print_report,
    start_of_last_week,
    strip_newlines_and_tabs,
    truncate_with_ellipsis,
)


@pytest.mark.parametrize(
    "hours,expected",
    [
        (1.5, "01h 30m"),
        (0.25, "    15m"),
        (0.0, "    00m"),
        (2.0, "02h 00m"),
        (12.75, "12h 45m"),
        (0.999, "01h 00m"),
    ],
)
def test_decimal_hours_to_string(hours: float, expected: str) -> None:
    assert decimal_hours_to_string(hours) == expected


def test_hour_and_minute_only_cells_align() -> None:
    assert len(decimal_hours_to_string(1.5)) == len(decimal_hours_to_string(0.25))


def test_truncate_short_text_unchanged() -> None:
    assert truncate_with_ellipsis("fix watcher", 60) == "fix watcher"


def test_truncate_on_word_boundary() -> None:
    assert truncate_with_ellipsis("fix the flaky watcher test", 12) == "fix the…"


def test_truncate_collapses_whitespace() -> None:
    assert truncate_with_ellipsis("a\n\tb   c", 60) == "a b c"


def test_strip_newlines_and_tabs() -> None:
    assert strip_newlines_and_tabs("Al\tpha\r\n") == "Alpha"


@pytest.mark.parametrize(
    "today,expected",
    [
        (date(2024, 3, 13), date(2024, 3, 4)),  # Wednesday
        (date(2024, 3, 11), date(2024, 3, 4)),  # Monday
        (date(2024, 3, 17), date(2024, 3, 4)),  # Sunday
        (date(2024, 1, 2), date(2023, 12, 25)),  # across a year boundary
    ],
)
def test_start_of_last_week(today: date, expected: date) -> None:
    assert start_of_last_week(today) == expected


ENTRIES = [
    {
        "spent_date": "2024-03-12",
        "hours": 1.5,
        "notes": "Review watcher changes",
        "project": {"id": 42, "name": "Alpha"},
    },
    {
        "spent_date": "2024-03-11",
        "hours": 0.25,
        "notes": None,
        "project": {"id": 1234, "name": "Beta\tInternal"},
    },
]


def test_format_report_aligns_columns() -> None:
    lines = format_report(ENTRIES).splitlines()
    assert lines == [
        "2024-03-12  42    Alpha         01h 30m  Review watcher changes",
        "2024-03-11  1234  BetaInternal      15m  (none)",
    ]


def test_format_report_empty() -> None:
    assert format_report([]) == ""


@pytest.mark.parametrize(
    "entry,message",
    [
        ({"id": 5, "hours": 1.0, "project": "Alpha"}, "malformed project"),
        ({"id": 5, "hours": "lots", "project": {"id": 42}}, "non-numeric hours"),
        ({"id": 5, "hours": True, "project": {"id": 42}}, "non-numeric hours"),
    ],
    ids=["string project", "string hours", "bool hours"],
)
def test_format_report_rejects_malformed_entries(entry: Dict[str, Any], message: str) -> None:
    with pytest.raises(RemoteQueryFailed, match=message):
        format_report([entry])


def test_format_report_missing_hours_counts_as_zero() -> None:
    line = format_report([{"spent_date": "2024-03-12", "project": {"id": 42, "name": "Alpha"}}])
    assert "    00m" in line


def test_print_report(harvest_client: HarvestClient, mock_session: MagicMock, harvest_responses: Callable[[Dict[str, Any]], None]) -> None:
    harvest_responses({"/users/me": {"id": 7}, "/time_entries": {"time_entries": ENTRIES}})
    out = io.StringIO()

    print_report(harvest_client, today=date(2024, 3, 13), out=out)

    params = mock_session.get.call_args[1]["params"]
    assert params == {"user_id": 7, "per_page": 200, "from": "2024-03-04"}
    assert "Review watcher changes" in out.getvalue()
    assert len(out.getvalue().splitlines()) == 2
