"""SQLAlchemy models for Transit Lens."""

from transit_lens.models.base import Base
from transit_lens.models.feed_version import FeedVersion
from transit_lens.models.gtfs import (
    Agency,
    Calendar,
    CalendarDate,
    Route,
    Shape,
    Stop,
    StopTime,
    Trip,
)

__all__ = [
    "Agency",
    "Base",
    "Calendar",
    "CalendarDate",
    "FeedVersion",
    "Route",
    "Shape",
    "Stop",
    "StopTime",
    "Trip",
]
