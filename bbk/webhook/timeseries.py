"""Timestamp parsing and window filtering for timeseries webhook responses.

Windows are half-open: ``start`` is inclusive and ``end`` is exclusive, so a
request with ``start == end`` always returns no points.
"""

from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from typing import Any

TimeBound = str | int | date | datetime | None


def parse_bound(value: TimeBound) -> datetime | None:
    """Parse an ISO-8601 date/datetime or a bare year into a naive UTC datetime."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    elif isinstance(value, int):
        parsed = datetime(value, 1, 1)
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit() and len(text) <= 4:
            parsed = datetime(int(text), 1, 1)
        else:
            parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _point_time(point: Mapping[str, Any]) -> datetime | None:
    try:
        return parse_bound(point.get("from"))
    except ValueError:
        return None


def filter_points(
    points: Iterable[Mapping[str, Any]],
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Sort points ascending, keep ``start <= from < end``, then take the first ``limit``."""
    timed: list[tuple[datetime, Mapping[str, Any]]] = []
    for point in points:
        moment = _point_time(point)
        if moment is not None:
            timed.append((moment, point))
    timed.sort(key=lambda pair: pair[0])

    selected = [
        dict(point)
        for moment, point in timed
        if (start is None or moment >= start) and (end is None or moment < end)
    ]
    if limit is not None:
        selected = selected[:limit]
    return selected
