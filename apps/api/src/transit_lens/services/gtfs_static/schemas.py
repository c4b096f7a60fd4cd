"""Field schemas for the GTFS tables we ingest.

Each table is described by a fixed ``TableSchema``: which fields are
required, which are optional, and the primitive type each one must be
coercible to. The parser validates against these; the normalizer uses the
same declarations to coerce text into storage types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

FieldKind = Literal["str", "int", "float", "date", "time"]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind = "str"
    required: bool = False


@dataclass(frozen=True)
class TableSchema:
    """Schema of one GTFS file and the table it loads into."""

    table: str
    filename: str
    natural_key: tuple[str, ...]
    fields: tuple[FieldSpec, ...]
    # Absent from the archive means an empty table rather than a broken feed
    optional_file: bool = False

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)


def _req(name: str, kind: FieldKind = "str") -> FieldSpec:
    return FieldSpec(name, kind, required=True)


def _opt(name: str, kind: FieldKind = "str") -> FieldSpec:
    return FieldSpec(name, kind, required=False)


AGENCY = TableSchema(
    table="agencies",
    filename="agency.txt",
    natural_key=("agency_id",),
    fields=(
        _req("agency_id"),
        _req("agency_name"),
        _req("agency_url"),
        _req("agency_timezone"),
        _opt("agency_lang"),
        _opt("agency_phone"),
        _opt("agency_fare_url"),
        _opt("agency_email"),
        _opt("cemv_support", "int"),
    ),
)

ROUTES = TableSchema(
    table="routes",
    filename="routes.txt",
    natural_key=("route_id",),
    fields=(
        _req("route_id"),
        _opt("agency_id"),
        _opt("route_short_name"),
        _opt("route_long_name"),
        _opt("route_desc"),
        _req("route_type", "int"),
        _opt("route_url"),
        _opt("route_color"),
        _opt("route_text_color"),
        _opt("route_sort_order", "int"),
    ),
)

STOPS = TableSchema(
    table="stops",
    filename="stops.txt",
    natural_key=("stop_id",),
    fields=(
        _req("stop_id"),
        _opt("stop_code"),
        _req("stop_name"),
        _opt("stop_desc"),
        _req("stop_lat", "float"),
        _req("stop_lon", "float"),
        _opt("zone_id"),
        _opt("stop_url"),
        _opt("location_type", "int"),
        _opt("parent_station"),
        _opt("wheelchair_boarding", "int"),
        _opt("platform_code"),
    ),
)

TRIPS = TableSchema(
    table="trips",
    filename="trips.txt",
    natural_key=("trip_id",),
    fields=(
        _req("route_id"),
        _req("service_id"),
        _req("trip_id"),
        _opt("trip_headsign"),
        _opt("trip_short_name"),
        _opt("direction_id", "int"),
        _opt("block_id"),
        _opt("shape_id"),
        _opt("wheelchair_accessible", "int"),
        _opt("bikes_allowed", "int"),
        _opt("brigade"),
    ),
)

STOP_TIMES = TableSchema(
    table="stop_times",
    filename="stop_times.txt",
    natural_key=("trip_id", "stop_sequence"),
    fields=(
        _req("trip_id"),
        _opt("arrival_time", "time"),
        _opt("departure_time", "time"),
        _req("stop_id"),
        _req("stop_sequence", "int"),
        _opt("stop_headsign"),
        _opt("pickup_type", "int"),
        _opt("drop_off_type", "int"),
        _opt("shape_dist_traveled", "float"),
        _opt("timepoint", "int"),
    ),
)

SHAPES = TableSchema(
    table="shapes",
    filename="shapes.txt",
    natural_key=("shape_id", "shape_pt_sequence"),
    fields=(
        _req("shape_id"),
        _req("shape_pt_lat", "float"),
        _req("shape_pt_lon", "float"),
        _req("shape_pt_sequence", "int"),
        _opt("shape_dist_traveled", "float"),
    ),
    optional_file=True,
)

CALENDAR = TableSchema(
    table="calendars",
    filename="calendar.txt",
    natural_key=("service_id",),
    fields=(
        _req("service_id"),
        _req("monday", "int"),
        _req("tuesday", "int"),
        _req("wednesday", "int"),
        _req("thursday", "int"),
        _req("friday", "int"),
        _req("saturday", "int"),
        _req("sunday", "int"),
        _req("start_date", "date"),
        _req("end_date", "date"),
    ),
    optional_file=True,
)

CALENDAR_DATES = TableSchema(
    table="calendar_dates",
    filename="calendar_dates.txt",
    natural_key=("service_id", "date"),
    fields=(
        _req("service_id"),
        _req("date", "date"),
        _req("exception_type", "int"),
    ),
    optional_file=True,
)

# Not loaded into a table: drives feed version detection
FEED_INFO = TableSchema(
    table="feed_info",
    filename="feed_info.txt",
    natural_key=(),
    fields=(
        _req("feed_publisher_name"),
        _req("feed_publisher_url"),
        _req("feed_lang"),
        _req("feed_start_date", "date"),
        _req("feed_end_date", "date"),
        _opt("default_lang"),
        _opt("feed_version"),
        _opt("feed_contact_email"),
        _opt("feed_contact_url"),
    ),
)

# Loadable tables keyed by table name
TABLE_SCHEMAS: dict[str, TableSchema] = {
    schema.table: schema
    for schema in (AGENCY, ROUTES, STOPS, TRIPS, STOP_TIMES, SHAPES, CALENDAR, CALENDAR_DATES)
}
