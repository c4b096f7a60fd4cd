"""GTFS-RT protobuf decode layer - flattens feed messages into events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.transit import gtfs_realtime_pb2
from pydantic import BaseModel

from transit_lens.config import FEED_TRIP_UPDATES, FEED_VEHICLE_POSITIONS
from transit_lens.errors import DecodeError
from transit_lens.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = get_logger(__name__)


class TripUpdateEvent(BaseModel):
    """One stop-time update of a trip update, flattened."""

    feed_ts: int
    header_ts: int
    trip_id: str | None = None
    route_id: str | None = None
    stop_id: str | None = None
    stop_sequence: int | None = None
    arr_time: int | None = None
    dep_time: int | None = None
    delay: int | None = None
    schedule_rel: int | None = None
    vehicle_id: str | None = None


class VehiclePositionEvent(BaseModel):
    """One vehicle position entity, flattened."""

    feed_ts: int
    header_ts: int
    veh_ts: int | None = None
    vehicle_id: str | None = None
    trip_id: str | None = None
    route_id: str | None = None
    direction_id: int | None = None
    lat: float | None = None
    lon: float | None = None
    bearing: float | None = None
    speed: float | None = None
    odometer: float | None = None
    current_status: int | None = None
    current_stop_sequence: int | None = None
    stop_id: str | None = None
    congestion_level: int | None = None
    occupancy_status: int | None = None
    occupancy_percentage: int | None = None


RealtimeEvent = TripUpdateEvent | VehiclePositionEvent


def _opt(message: Any, field: str) -> Any:
    """Return a field's value, or None when the sender did not set it."""
    if message is None or not message.HasField(field):
        return None
    return getattr(message, field)


def _sub(message: Any, field: str) -> Any:
    """Return a nested message, or None when it is absent."""
    if not message.HasField(field):
        return None
    return getattr(message, field)


class GtfsRtDecoder:
    """Decodes GTFS-RT FeedMessage bytes into lazy event sequences.

    Parsing happens when a decode method is called, so malformed buffers
    fail immediately; events are then generated one entity at a time.
    """

    def decode(self, kind: str, data: bytes, ingest_ts: int) -> Iterator[RealtimeEvent]:
        """Decode a buffer of the given stream kind."""
        if kind == FEED_TRIP_UPDATES:
            return self.decode_trip_updates(data, ingest_ts)
        if kind == FEED_VEHICLE_POSITIONS:
            return self.decode_vehicle_positions(data, ingest_ts)
        msg = f"Unknown realtime feed kind: {kind!r}"
        raise ValueError(msg)

    def decode_trip_updates(self, data: bytes, ingest_ts: int) -> Iterator[TripUpdateEvent]:
        """One event per stop-time update of every trip update entity.

        Raises:
            DecodeError: If the buffer is not a valid FeedMessage.
        """
        feed = self._parse(data, FEED_TRIP_UPDATES)
        return self._iter_trip_updates(feed, ingest_ts, self._header_ts(feed, ingest_ts))

    def decode_vehicle_positions(
        self, data: bytes, ingest_ts: int
    ) -> Iterator[VehiclePositionEvent]:
        """One event per vehicle position entity.

        Raises:
            DecodeError: If the buffer is not a valid FeedMessage.
        """
        feed = self._parse(data, FEED_VEHICLE_POSITIONS)
        return self._iter_vehicle_positions(feed, ingest_ts, self._header_ts(feed, ingest_ts))

    @staticmethod
    def _parse(data: bytes, kind: str) -> gtfs_realtime_pb2.FeedMessage:
        feed = gtfs_realtime_pb2.FeedMessage()
        try:
            feed.ParseFromString(data)
        except ProtobufDecodeError as exc:
            msg = f"Failed to decode {kind} protobuf: {exc}"
            logger.error(msg, feed_type=kind, size_bytes=len(data))
            raise DecodeError(msg) from exc

        logger.info(
            "GTFS-RT feed decoded",
            feed_type=kind,
            entity_count=len(feed.entity),
            feed_timestamp=feed.header.timestamp if feed.header.HasField("timestamp") else None,
            gtfs_rt_version=feed.header.gtfs_realtime_version,
        )
        return feed

    @staticmethod
    def _header_ts(feed: gtfs_realtime_pb2.FeedMessage, ingest_ts: int) -> int:
        """Feed-declared time in epoch seconds, falling back to ingestion time."""
        if feed.header.HasField("timestamp"):
            return int(feed.header.timestamp)
        return ingest_ts // 1000

    @staticmethod
    def _iter_trip_updates(
        feed: gtfs_realtime_pb2.FeedMessage, ingest_ts: int, header_ts: int
    ) -> Iterator[TripUpdateEvent]:
        for entity in feed.entity:
            if not entity.HasField("trip_update"):
                continue

            tu = entity.trip_update
            trip = _sub(tu, "trip")
            vehicle = _sub(tu, "vehicle")

            for stu in tu.stop_time_update:
                arrival = _sub(stu, "arrival")
                departure = _sub(stu, "departure")
                delay = _opt(arrival, "delay")
                if delay is None:
                    delay = _opt(departure, "delay")

                yield TripUpdateEvent(
                    feed_ts=ingest_ts,
                    header_ts=header_ts,
                    trip_id=_opt(trip, "trip_id"),
                    route_id=_opt(trip, "route_id"),
                    stop_id=_opt(stu, "stop_id"),
                    stop_sequence=_opt(stu, "stop_sequence"),
                    arr_time=_opt(arrival, "time"),
                    dep_time=_opt(departure, "time"),
                    delay=delay,
                    schedule_rel=_opt(trip, "schedule_relationship"),
                    vehicle_id=_opt(vehicle, "id"),
                )

    @staticmethod
    def _iter_vehicle_positions(
        feed: gtfs_realtime_pb2.FeedMessage, ingest_ts: int, header_ts: int
    ) -> Iterator[VehiclePositionEvent]:
        for entity in feed.entity:
            if not entity.HasField("vehicle"):
                continue

            vp = entity.vehicle
            trip = _sub(vp, "trip")
            position = _sub(vp, "position")
            descriptor = _sub(vp, "vehicle")

            yield VehiclePositionEvent(
                feed_ts=ingest_ts,
                header_ts=header_ts,
                veh_ts=_opt(vp, "timestamp"),
                vehicle_id=_opt(descriptor, "id"),
                trip_id=_opt(trip, "trip_id"),
                route_id=_opt(trip, "route_id"),
                direction_id=_opt(trip, "direction_id"),
                lat=_opt(position, "latitude"),
                lon=_opt(position, "longitude"),
                bearing=_opt(position, "bearing"),
                speed=_opt(position, "speed"),
                odometer=_opt(position, "odometer"),
                current_status=_opt(vp, "current_status"),
                current_stop_sequence=_opt(vp, "current_stop_sequence"),
                stop_id=_opt(vp, "stop_id"),
                congestion_level=_opt(vp, "congestion_level"),
                occupancy_status=_opt(vp, "occupancy_status"),
                occupancy_percentage=_opt(vp, "occupancy_percentage"),
            )
