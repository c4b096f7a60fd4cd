"""GTFS static data models.

Every table is scoped to a feed version: the natural key from the source
feed is only unique together with ``feed_version_id``.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003 - SQLAlchemy needs this at runtime

from sqlalchemy import (
    BigInteger,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from transit_lens.models.base import Base


def _feed_version_fk() -> Mapped[int]:
    return mapped_column(
        Integer,
        ForeignKey("feed_versions.feed_version_id", ondelete="CASCADE"),
        nullable=False,
    )


class Agency(Base):
    """Transit agency."""

    __tablename__ = "agencies"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    agency_id: Mapped[str] = mapped_column(String(64), nullable=False)
    agency_name: Mapped[str] = mapped_column(String(255), nullable=False)
    agency_url: Mapped[str] = mapped_column(String(255), nullable=False)
    agency_timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    agency_lang: Mapped[str | None] = mapped_column(String(16))
    agency_phone: Mapped[str | None] = mapped_column(String(64))
    agency_fare_url: Mapped[str | None] = mapped_column(String(255))
    agency_email: Mapped[str | None] = mapped_column(String(255))
    cemv_support: Mapped[int | None] = mapped_column(SmallInteger)

    __table_args__ = (
        UniqueConstraint("agency_id", "feed_version_id", name="uq_agencies_natural_key"),
    )


class Route(Base):
    """Transit route."""

    __tablename__ = "routes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    route_id: Mapped[str] = mapped_column(String(64), nullable=False)
    agency_id: Mapped[str | None] = mapped_column(String(64))
    route_short_name: Mapped[str | None] = mapped_column(String(64))
    route_long_name: Mapped[str | None] = mapped_column(String(255))
    route_desc: Mapped[str | None] = mapped_column(String(1024))
    route_type: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    route_url: Mapped[str | None] = mapped_column(String(255))
    route_color: Mapped[str | None] = mapped_column(String(8))
    route_text_color: Mapped[str | None] = mapped_column(String(8))
    route_sort_order: Mapped[int | None] = mapped_column(Integer)

    __table_args__ = (
        UniqueConstraint("route_id", "feed_version_id", name="uq_routes_natural_key"),
    )


class Stop(Base):
    """Transit stop/station."""

    __tablename__ = "stops"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    stop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    stop_code: Mapped[str | None] = mapped_column(String(64))
    stop_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stop_desc: Mapped[str | None] = mapped_column(String(1024))
    stop_lat: Mapped[float] = mapped_column(Float, nullable=False)
    stop_lon: Mapped[float] = mapped_column(Float, nullable=False)
    zone_id: Mapped[str | None] = mapped_column(String(64))
    stop_url: Mapped[str | None] = mapped_column(String(255))
    location_type: Mapped[int | None] = mapped_column(SmallInteger)
    parent_station: Mapped[str | None] = mapped_column(String(64))
    wheelchair_boarding: Mapped[int | None] = mapped_column(SmallInteger)
    platform_code: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("stop_id", "feed_version_id", name="uq_stops_natural_key"),
        Index("ix_stops_lat_lon", "stop_lat", "stop_lon"),
    )


class Trip(Base):
    """Transit trip (a specific run of a route)."""

    __tablename__ = "trips"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    trip_id: Mapped[str] = mapped_column(String(128), nullable=False)
    route_id: Mapped[str] = mapped_column(String(64), nullable=False)
    service_id: Mapped[str] = mapped_column(String(64), nullable=False)
    trip_headsign: Mapped[str | None] = mapped_column(String(255))
    trip_short_name: Mapped[str | None] = mapped_column(String(64))
    direction_id: Mapped[int | None] = mapped_column(SmallInteger)
    block_id: Mapped[str | None] = mapped_column(String(64))
    shape_id: Mapped[str | None] = mapped_column(String(64))
    wheelchair_accessible: Mapped[int | None] = mapped_column(SmallInteger)
    bikes_allowed: Mapped[int | None] = mapped_column(SmallInteger)
    # Vehicle duty identifier published by some agencies (ZTM Poznan)
    brigade: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        UniqueConstraint("trip_id", "feed_version_id", name="uq_trips_natural_key"),
        Index("ix_trips_route_id", "feed_version_id", "route_id"),
    )


class StopTime(Base):
    """Scheduled stop time for a trip."""

    __tablename__ = "stop_times"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    trip_id: Mapped[str] = mapped_column(String(128), nullable=False)
    stop_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    stop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # GTFS times may exceed 24:00:00, so they stay text
    arrival_time: Mapped[str | None] = mapped_column(String(10))
    departure_time: Mapped[str | None] = mapped_column(String(10))
    stop_headsign: Mapped[str | None] = mapped_column(String(255))
    pickup_type: Mapped[int | None] = mapped_column(SmallInteger)
    drop_off_type: Mapped[int | None] = mapped_column(SmallInteger)
    shape_dist_traveled: Mapped[float | None] = mapped_column(Float)
    timepoint: Mapped[int | None] = mapped_column(SmallInteger)

    __table_args__ = (
        UniqueConstraint(
            "trip_id", "stop_sequence", "feed_version_id", name="uq_stop_times_natural_key"
        ),
        Index("ix_stop_times_stop_id", "feed_version_id", "stop_id"),
    )


class Shape(Base):
    """One point of a shape polyline."""

    __tablename__ = "shapes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    shape_id: Mapped[str] = mapped_column(String(64), nullable=False)
    shape_pt_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    shape_pt_lat: Mapped[float] = mapped_column(Float, nullable=False)
    shape_pt_lon: Mapped[float] = mapped_column(Float, nullable=False)
    shape_dist_traveled: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (
        UniqueConstraint(
            "shape_id", "shape_pt_sequence", "feed_version_id", name="uq_shapes_natural_key"
        ),
    )


class Calendar(Base):
    """Weekly service pattern."""

    __tablename__ = "calendars"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    service_id: Mapped[str] = mapped_column(String(64), nullable=False)
    monday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    tuesday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    wednesday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    thursday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    friday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    saturday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    sunday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("service_id", "feed_version_id", name="uq_calendars_natural_key"),
    )


class CalendarDate(Base):
    """Service exception for a single date."""

    __tablename__ = "calendar_dates"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    feed_version_id: Mapped[int] = _feed_version_fk()
    service_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    exception_type: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "service_id", "date", "feed_version_id", name="uq_calendar_dates_natural_key"
        ),
    )
