"""Read-side access to loaded static data."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from transit_lens.errors import StorageError
from transit_lens.services.gtfs_static.ledger import FeedVersionLedger
from transit_lens.services.gtfs_static.schemas import TABLE_SCHEMAS

if TYPE_CHECKING:
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncSession


class StaticQueries:
    """Answers "static data of the version active on date D"."""

    def __init__(self, feed_source_id: int) -> None:
        self._ledger = FeedVersionLedger(feed_source_id)

    async def fetch_table(
        self, session: AsyncSession, table: str, on_date: date
    ) -> list[dict[str, Any]]:
        """Return every row of ``table`` for the version active on ``on_date``.

        Returns an empty list when no version covers the date.
        """
        try:
            schema = TABLE_SCHEMAS[table]
        except KeyError:
            msg = f"Unknown GTFS table: {table!r}"
            raise ValueError(msg) from None

        version = await self._ledger.active_version(session, on_date)
        if version is None:
            return []

        column_list = ", ".join(f'"{col}"' for col in ("feed_version_id", *schema.field_names))
        order_by = ", ".join(f'"{col}"' for col in schema.natural_key)
        try:
            result = await session.execute(
                text(
                    f"SELECT {column_list} FROM {schema.table} "
                    f"WHERE feed_version_id = :feed_version_id ORDER BY {order_by}"
                ),
                {"feed_version_id": version.feed_version_id},
            )
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as exc:
            msg = f"Could not read {table}: {exc}"
            raise StorageError(msg) from exc
