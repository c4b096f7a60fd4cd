"""Test fixtures for GTFS-RT protobuf data."""

from __future__ import annotations

from typing import Any

from google.transit import gtfs_realtime_pb2

FEED_TIMESTAMP = 1_717_000_000


def _new_feed(feed_timestamp: int | None) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    if feed_timestamp is not None:
        feed.header.timestamp = feed_timestamp
    return feed


def build_trip_update_feed(
    trip_id: str = "1_5386^N+",
    route_id: str = "16",
    vehicle_id: str | None = "1234",
    stop_updates: list[dict[str, Any]] | None = None,
    feed_timestamp: int | None = FEED_TIMESTAMP,
) -> bytes:
    """Build a serialized FeedMessage with one TripUpdate entity.

    Args:
        trip_id: The trip identifier.
        route_id: The route identifier.
        vehicle_id: Vehicle descriptor id, or None to leave it unset.
        stop_updates: Dicts with keys stop_id, stop_sequence and optionally
            arrival_delay, arrival_time, departure_delay, departure_time.
            Keys that are absent stay unset on the message.
        feed_timestamp: Header timestamp, or None to leave it unset.

    Returns:
        Serialized protobuf bytes.
    """
    feed = _new_feed(feed_timestamp)

    entity = feed.entity.add()
    entity.id = f"tu_{trip_id}"
    tu = entity.trip_update
    tu.trip.trip_id = trip_id
    tu.trip.route_id = route_id
    tu.trip.schedule_relationship = gtfs_realtime_pb2.TripDescriptor.SCHEDULED
    if vehicle_id is not None:
        tu.vehicle.id = vehicle_id

    if stop_updates is None:
        stop_updates = [
            {
                "stop_id": "2186",
                "stop_sequence": 0,
                "arrival_delay": 60,
                "arrival_time": 1_717_000_120,
            },
            {"stop_id": "1558", "stop_sequence": 1, "departure_delay": 90},
        ]

    for su in stop_updates:
        stu = tu.stop_time_update.add()
        stu.stop_id = su["stop_id"]
        stu.stop_sequence = su["stop_sequence"]
        if "arrival_delay" in su:
            stu.arrival.delay = su["arrival_delay"]
        if "arrival_time" in su:
            stu.arrival.time = su["arrival_time"]
        if "departure_delay" in su:
            stu.departure.delay = su["departure_delay"]
        if "departure_time" in su:
            stu.departure.time = su["departure_time"]

    return feed.SerializeToString()


def build_vehicle_position_feed(
    vehicle_id: str = "1234",
    trip_id: str | None = "1_5386^N+",
    route_id: str = "16",
    lat: float = 52.4064,
    lon: float = 16.9252,
    speed: float | None = 8.5,
    feed_timestamp: int | None = FEED_TIMESTAMP,
) -> bytes:
    """Build a serialized FeedMessage with one VehiclePosition entity.

    ``trip_id=None`` leaves the trip descriptor unset; ``speed=None`` leaves
    the speed unset.
    """
    feed = _new_feed(feed_timestamp)

    entity = feed.entity.add()
    entity.id = f"vp_{vehicle_id}"
    vp = entity.vehicle
    vp.vehicle.id = vehicle_id
    if trip_id is not None:
        vp.trip.trip_id = trip_id
        vp.trip.route_id = route_id
    vp.position.latitude = lat
    vp.position.longitude = lon
    if speed is not None:
        vp.position.speed = speed
    vp.timestamp = FEED_TIMESTAMP - 5
    vp.current_stop_sequence = 3
    vp.current_status = gtfs_realtime_pb2.VehiclePosition.STOPPED_AT

    return feed.SerializeToString()


def build_mixed_feed(feed_timestamp: int | None = FEED_TIMESTAMP) -> bytes:
    """A feed with one entity of each kind plus an alert-only entity."""
    feed = _new_feed(feed_timestamp)

    tu_entity = feed.entity.add()
    tu_entity.id = "tu"
    tu_entity.trip_update.trip.trip_id = "trip_tu"
    stu = tu_entity.trip_update.stop_time_update.add()
    stu.stop_sequence = 1

    vp_entity = feed.entity.add()
    vp_entity.id = "vp"
    vp_entity.vehicle.vehicle.id = "veh_vp"

    alert_entity = feed.entity.add()
    alert_entity.id = "alert"
    alert_entity.alert.header_text.translation.add().text = "Detour"

    return feed.SerializeToString()


def build_trip_update_without_stops() -> bytes:
    """A TripUpdate entity with no stop-time updates."""
    feed = _new_feed(FEED_TIMESTAMP)
    entity = feed.entity.add()
    entity.id = "tu_empty"
    entity.trip_update.trip.trip_id = "trip_empty"
    return feed.SerializeToString()


def build_empty_feed(feed_timestamp: int | None = FEED_TIMESTAMP) -> bytes:
    """Build an empty FeedMessage with no entities."""
    return _new_feed(feed_timestamp).SerializeToString()
