"""GTFS-Realtime snapshot pipeline."""

from transit_lens.services.gtfs_rt.decoder import GtfsRtDecoder
from transit_lens.services.gtfs_rt.worker import GtfsRtWorker
from transit_lens.services.gtfs_rt.writer import SnapshotWriter

__all__ = [
    "GtfsRtDecoder",
    "GtfsRtWorker",
    "SnapshotWriter",
]
