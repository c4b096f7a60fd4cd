"""Initial schema: feed version ledger and static GTFS tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_and_version() -> list[sa.Column]:
    return [
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("feed_version_id", sa.Integer(), nullable=False),
    ]


def _version_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["feed_version_id"], ["feed_versions.feed_version_id"], ondelete="CASCADE"
    )


def upgrade() -> None:
    # Create feed_versions table
    op.create_table(
        "feed_versions",
        sa.Column("feed_version_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("feed_source_id", sa.Integer(), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=False),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("feed_version_id"),
        sa.UniqueConstraint("feed_source_id", "valid_from", name="uq_feed_versions_source_from"),
        sa.CheckConstraint("valid_to >= valid_from", name="ck_feed_versions_window"),
    )
    op.create_index(
        "ix_feed_versions_source_window",
        "feed_versions",
        ["feed_source_id", "valid_from", "valid_to"],
    )

    # Create agencies table
    op.create_table(
        "agencies",
        *_id_and_version(),
        sa.Column("agency_id", sa.String(64), nullable=False),
        sa.Column("agency_name", sa.String(255), nullable=False),
        sa.Column("agency_url", sa.String(255), nullable=False),
        sa.Column("agency_timezone", sa.String(64), nullable=False),
        sa.Column("agency_lang", sa.String(16), nullable=True),
        sa.Column("agency_phone", sa.String(64), nullable=True),
        sa.Column("agency_fare_url", sa.String(255), nullable=True),
        sa.Column("agency_email", sa.String(255), nullable=True),
        sa.Column("cemv_support", sa.SmallInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint("agency_id", "feed_version_id", name="uq_agencies_natural_key"),
    )

    # Create routes table
    op.create_table(
        "routes",
        *_id_and_version(),
        sa.Column("route_id", sa.String(64), nullable=False),
        sa.Column("agency_id", sa.String(64), nullable=True),
        sa.Column("route_short_name", sa.String(64), nullable=True),
        sa.Column("route_long_name", sa.String(255), nullable=True),
        sa.Column("route_desc", sa.String(1024), nullable=True),
        sa.Column("route_type", sa.SmallInteger(), nullable=False),
        sa.Column("route_url", sa.String(255), nullable=True),
        sa.Column("route_color", sa.String(8), nullable=True),
        sa.Column("route_text_color", sa.String(8), nullable=True),
        sa.Column("route_sort_order", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint("route_id", "feed_version_id", name="uq_routes_natural_key"),
    )

    # Create stops table
    op.create_table(
        "stops",
        *_id_and_version(),
        sa.Column("stop_id", sa.String(64), nullable=False),
        sa.Column("stop_code", sa.String(64), nullable=True),
        sa.Column("stop_name", sa.String(255), nullable=False),
        sa.Column("stop_desc", sa.String(1024), nullable=True),
        sa.Column("stop_lat", sa.Float(), nullable=False),
        sa.Column("stop_lon", sa.Float(), nullable=False),
        sa.Column("zone_id", sa.String(64), nullable=True),
        sa.Column("stop_url", sa.String(255), nullable=True),
        sa.Column("location_type", sa.SmallInteger(), nullable=True),
        sa.Column("parent_station", sa.String(64), nullable=True),
        sa.Column("wheelchair_boarding", sa.SmallInteger(), nullable=True),
        sa.Column("platform_code", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint("stop_id", "feed_version_id", name="uq_stops_natural_key"),
    )
    op.create_index("ix_stops_lat_lon", "stops", ["stop_lat", "stop_lon"])

    # Create trips table
    op.create_table(
        "trips",
        *_id_and_version(),
        sa.Column("trip_id", sa.String(128), nullable=False),
        sa.Column("route_id", sa.String(64), nullable=False),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("trip_headsign", sa.String(255), nullable=True),
        sa.Column("trip_short_name", sa.String(64), nullable=True),
        sa.Column("direction_id", sa.SmallInteger(), nullable=True),
        sa.Column("block_id", sa.String(64), nullable=True),
        sa.Column("shape_id", sa.String(64), nullable=True),
        sa.Column("wheelchair_accessible", sa.SmallInteger(), nullable=True),
        sa.Column("bikes_allowed", sa.SmallInteger(), nullable=True),
        sa.Column("brigade", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint("trip_id", "feed_version_id", name="uq_trips_natural_key"),
    )
    op.create_index("ix_trips_route_id", "trips", ["feed_version_id", "route_id"])

    # Create stop_times table
    op.create_table(
        "stop_times",
        *_id_and_version(),
        sa.Column("trip_id", sa.String(128), nullable=False),
        sa.Column("stop_sequence", sa.Integer(), nullable=False),
        sa.Column("stop_id", sa.String(64), nullable=False),
        sa.Column("arrival_time", sa.String(10), nullable=True),
        sa.Column("departure_time", sa.String(10), nullable=True),
        sa.Column("stop_headsign", sa.String(255), nullable=True),
        sa.Column("pickup_type", sa.SmallInteger(), nullable=True),
        sa.Column("drop_off_type", sa.SmallInteger(), nullable=True),
        sa.Column("shape_dist_traveled", sa.Float(), nullable=True),
        sa.Column("timepoint", sa.SmallInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint(
            "trip_id", "stop_sequence", "feed_version_id", name="uq_stop_times_natural_key"
        ),
    )
    op.create_index("ix_stop_times_stop_id", "stop_times", ["feed_version_id", "stop_id"])

    # Create shapes table
    op.create_table(
        "shapes",
        *_id_and_version(),
        sa.Column("shape_id", sa.String(64), nullable=False),
        sa.Column("shape_pt_sequence", sa.Integer(), nullable=False),
        sa.Column("shape_pt_lat", sa.Float(), nullable=False),
        sa.Column("shape_pt_lon", sa.Float(), nullable=False),
        sa.Column("shape_dist_traveled", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint(
            "shape_id", "shape_pt_sequence", "feed_version_id", name="uq_shapes_natural_key"
        ),
    )

    # Create calendars table
    op.create_table(
        "calendars",
        *_id_and_version(),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("monday", sa.SmallInteger(), nullable=False),
        sa.Column("tuesday", sa.SmallInteger(), nullable=False),
        sa.Column("wednesday", sa.SmallInteger(), nullable=False),
        sa.Column("thursday", sa.SmallInteger(), nullable=False),
        sa.Column("friday", sa.SmallInteger(), nullable=False),
        sa.Column("saturday", sa.SmallInteger(), nullable=False),
        sa.Column("sunday", sa.SmallInteger(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint("service_id", "feed_version_id", name="uq_calendars_natural_key"),
    )

    # Create calendar_dates table
    op.create_table(
        "calendar_dates",
        *_id_and_version(),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("exception_type", sa.SmallInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        _version_fk(),
        sa.UniqueConstraint(
            "service_id", "date", "feed_version_id", name="uq_calendar_dates_natural_key"
        ),
    )


def downgrade() -> None:
    op.drop_table("calendar_dates")
    op.drop_table("calendars")
    op.drop_table("shapes")
    op.drop_index("ix_stop_times_stop_id", table_name="stop_times")
    op.drop_table("stop_times")
    op.drop_index("ix_trips_route_id", table_name="trips")
    op.drop_table("trips")
    op.drop_index("ix_stops_lat_lon", table_name="stops")
    op.drop_table("stops")
    op.drop_table("routes")
    op.drop_table("agencies")
    op.drop_index("ix_feed_versions_source_window", table_name="feed_versions")
    op.drop_table("feed_versions")
