"""Transit Lens - GTFS static and GTFS-realtime ingestion service."""

__version__ = "0.1.0"
