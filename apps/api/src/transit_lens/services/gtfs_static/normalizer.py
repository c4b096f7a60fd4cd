"""GTFS value coercion - turns validated text records into storage rows."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from transit_lens.services.gtfs_static.schemas import FieldKind, TableSchema

GTFS_DATE_FORMAT = "%Y%m%d"


class TimeParseError(ValueError):
    """Raised when a GTFS time string cannot be parsed."""


def parse_gtfs_time(time_str: str) -> int:
    """Parse a GTFS time string (HH:MM:SS) to seconds from midnight.

    Supports times >= 24:00:00 for trips spanning past midnight, and
    single-digit hours.

    Examples:
        "08:30:00" -> 30600
        "25:01:30" -> 90090

    Raises:
        TimeParseError: If the format is invalid.
    """
    time_str = time_str.strip()
    parts = time_str.split(":")
    if len(parts) != 3:
        msg = f"Invalid GTFS time format: {time_str!r} (expected HH:MM:SS)"
        raise TimeParseError(msg)

    if not all(part.isdigit() for part in parts) or len(parts[1]) != 2 or len(parts[2]) != 2:
        msg = f"Non-numeric components in GTFS time: {time_str!r}"
        raise TimeParseError(msg)

    hours, minutes, seconds = (int(part) for part in parts)
    if minutes > 59 or seconds > 59:
        msg = f"Invalid minutes/seconds in GTFS time: {time_str!r}"
        raise TimeParseError(msg)

    return hours * 3600 + minutes * 60 + seconds


def parse_gtfs_date(value: str) -> date:
    """Parse a GTFS service date (YYYYMMDD)."""
    if len(value) != 8 or not value.isdigit():
        msg = f"Invalid GTFS date: {value!r} (expected YYYYMMDD)"
        raise ValueError(msg)
    return datetime.strptime(value, GTFS_DATE_FORMAT).date()


def _to_int(value: str) -> int:
    return int(value)


def _to_float(value: str) -> float:
    result = float(value)
    if not math.isfinite(result):
        msg = f"Non-finite number: {value!r}"
        raise ValueError(msg)
    return result


def _to_time_text(value: str) -> str:
    parse_gtfs_time(value)
    return value


# One coercion function per primitive kind; each raises ValueError on bad input
COERCERS: dict[FieldKind, Callable[[str], Any]] = {
    "str": str,
    "int": _to_int,
    "float": _to_float,
    "date": parse_gtfs_date,
    "time": _to_time_text,
}


class GtfsNormalizer:
    """Maps validated GTFS text records to typed, database-ready rows."""

    @staticmethod
    def to_row(
        schema: TableSchema, record: dict[str, str | None], feed_version_id: int
    ) -> dict[str, Any]:
        """Coerce one record into a storage row for ``schema.table``.

        Every schema field is present in the result; absent optionals are None.

        Raises:
            ValueError: If a value cannot be coerced. Records produced by
                GtfsParser never trigger this.
        """
        row: dict[str, Any] = {"feed_version_id": feed_version_id}
        for spec in schema.fields:
            value = record.get(spec.name)
            row[spec.name] = COERCERS[spec.kind](value) if value is not None else None
        return row

    def to_rows(
        self,
        schema: TableSchema,
        records: list[dict[str, str | None]],
        feed_version_id: int,
    ) -> list[dict[str, Any]]:
        """Coerce a whole table's records."""
        return [self.to_row(schema, record, feed_version_id) for record in records]
