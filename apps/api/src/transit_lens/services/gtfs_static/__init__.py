"""Static GTFS sync pipeline."""

from transit_lens.services.gtfs_static.importer import GtfsImporter
from transit_lens.services.gtfs_static.ledger import FeedVersionLedger
from transit_lens.services.gtfs_static.loader import BatchLoader
from transit_lens.services.gtfs_static.normalizer import GtfsNormalizer
from transit_lens.services.gtfs_static.parser import GtfsParser
from transit_lens.services.gtfs_static.queries import StaticQueries

__all__ = [
    "BatchLoader",
    "FeedVersionLedger",
    "GtfsImporter",
    "GtfsNormalizer",
    "GtfsParser",
    "StaticQueries",
]
