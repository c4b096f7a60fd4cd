"""Batch loader - idempotent, bounded-batch inserts of static GTFS rows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from transit_lens.config import MAX_BATCH_SIZE
from transit_lens.database import get_session_context
from transit_lens.errors import StorageError
from transit_lens.logging import get_logger
from transit_lens.services.gtfs_static.normalizer import GtfsNormalizer
from transit_lens.services.gtfs_static.schemas import TABLE_SCHEMAS

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import TextClause

    from transit_lens.services.gtfs_static.schemas import TableSchema

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadResult:
    table: str
    rows: int
    batches: int
    inserted: int

    @property
    def skipped(self) -> int:
        """Rows that already existed for this feed version."""
        return self.rows - self.inserted


def iter_batches(rows: list[dict[str, Any]], batch_size: int) -> Iterator[list[dict[str, Any]]]:
    """Split rows into consecutive chunks of at most ``batch_size``."""
    for start in range(0, len(rows), batch_size):
        yield rows[start : start + batch_size]


def batch_count(total: int, batch_size: int) -> int:
    return math.ceil(total / batch_size)


def build_insert(
    schema: TableSchema, batch: list[dict[str, Any]]
) -> tuple[TextClause, dict[str, Any]]:
    """Build a multi-row INSERT that skips rows already loaded for the version."""
    columns = ("feed_version_id", *schema.field_names)
    conflict_cols = (*schema.natural_key, "feed_version_id")

    column_list = ", ".join(f'"{col}"' for col in columns)
    conflict_list = ", ".join(f'"{col}"' for col in conflict_cols)
    values_sql = ", ".join(
        "(" + ", ".join(f":{col}_{i}" for col in columns) + ")" for i in range(len(batch))
    )
    params: dict[str, Any] = {}
    for i, row in enumerate(batch):
        for col in columns:
            params[f"{col}_{i}"] = row.get(col)

    stmt = text(
        f"""
        INSERT INTO {schema.table} ({column_list})
        VALUES {values_sql}
        ON CONFLICT ({conflict_list}) DO NOTHING
        RETURNING 1
        """
    )
    return stmt, params


class BatchLoader:
    """Writes validated records for one table in committed chunks.

    Each ``load`` call opens its own session, so loads for different tables
    can run concurrently. Chunks within one table are written sequentially.
    """

    def __init__(
        self,
        batch_size: int = MAX_BATCH_SIZE,
        session_factory: SessionFactory | None = None,
        normalizer: GtfsNormalizer | None = None,
    ) -> None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            msg = f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
            raise ValueError(msg)
        self.batch_size = batch_size
        self._session_factory = session_factory or get_session_context
        self._normalizer = normalizer or GtfsNormalizer()

    async def load(
        self,
        records: Iterable[dict[str, str | None]],
        feed_version_id: int,
        table: str,
    ) -> LoadResult:
        """Insert ``records`` into ``table`` under ``feed_version_id``.

        Rows already present for the same natural key and version are left
        untouched. Zero records perform no write.

        Raises:
            StorageError: If a chunk fails. That chunk is rolled back; earlier
                chunks stay committed and a rerun skips them.
        """
        try:
            schema = TABLE_SCHEMAS[table]
        except KeyError:
            msg = f"Unknown GTFS table: {table!r}"
            raise ValueError(msg) from None

        rows = [self._normalizer.to_row(schema, record, feed_version_id) for record in records]
        if not rows:
            logger.info("No rows to load", table=table, feed_version_id=feed_version_id)
            return LoadResult(table=table, rows=0, batches=0, inserted=0)

        logger.info(
            "Loading table",
            table=table,
            feed_version_id=feed_version_id,
            rows=len(rows),
            batches=batch_count(len(rows), self.batch_size),
        )
        inserted = 0
        batches = 0
        async with self._session_factory() as session:
            for batch_index, batch in enumerate(iter_batches(rows, self.batch_size)):
                stmt, params = build_insert(schema, batch)
                try:
                    result = await session.execute(stmt, params)
                    inserted += len(result.fetchall())
                    await session.commit()
                except SQLAlchemyError as exc:
                    await session.rollback()
                    logger.error(
                        "Batch insert failed",
                        table=table,
                        feed_version_id=feed_version_id,
                        batch_index=batch_index,
                        batch_rows=len(batch),
                        exc_info=exc,
                    )
                    msg = f"{table} batch {batch_index} insert failed: {exc}"
                    raise StorageError(msg) from exc
                batches += 1

        load_result = LoadResult(table=table, rows=len(rows), batches=batches, inserted=inserted)
        logger.info(
            "Loaded table",
            table=table,
            feed_version_id=feed_version_id,
            rows=load_result.rows,
            batches=load_result.batches,
            inserted=load_result.inserted,
            skipped=load_result.skipped,
        )
        return load_result
