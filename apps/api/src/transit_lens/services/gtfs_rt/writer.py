"""NDJSON snapshot writer with rename-as-commit semantics."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING

from transit_lens.errors import FilesystemError
from transit_lens.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pydantic import BaseModel

logger = get_logger(__name__)

SNAPSHOT_SUFFIX = ".ndjson"
PART_SUFFIX = ".part"


class SnapshotWriter:
    """Writes realtime event sequences to ``<storage_path>/<kind>/<ts>.ndjson``.

    Lines go to a ``.part`` sibling first; the final name only appears once
    the file is complete and synced, so readers never see a partial snapshot.
    """

    def __init__(self, storage_path: Path) -> None:
        self.storage_path = Path(storage_path)

    def snapshot_path(self, kind: str, ingest_ts: int) -> Path:
        """Create the stream directory and return the snapshot path for ``ingest_ts``."""
        directory = self.storage_path / kind
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Cannot create snapshot directory {directory}: {exc}"
            raise FilesystemError(msg) from exc
        return directory / f"{ingest_ts}{SNAPSHOT_SUFFIX}"

    async def write(self, path: Path, events: Iterable[BaseModel]) -> int:
        """Write ``events`` to ``path`` atomically, returning the line count.

        Raises:
            FilesystemError: On an OS error before the rename; the final path
                is left untouched.
            Exception: Whatever ``events`` raises while being iterated, with
                the same cleanup.
        """
        return await asyncio.to_thread(self.write_sync, path, events)

    def write_sync(self, path: Path, events: Iterable[BaseModel]) -> int:
        part_path = path.with_name(path.name + PART_SUFFIX)
        lines = 0
        try:
            with part_path.open("w", encoding="utf-8") as handle:
                for event in events:
                    handle.write(event.model_dump_json())
                    handle.write("\n")
                    lines += 1
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(part_path, path)
        except OSError as exc:
            _remove_quietly(part_path)
            msg = f"Failed to write snapshot {path}: {exc}"
            raise FilesystemError(msg) from exc
        except BaseException:
            _remove_quietly(part_path)
            raise

        logger.info("Snapshot written", path=str(path), lines=lines)
        return lines

    def list_snapshots(self, kind: str, since_ts: int | None = None) -> list[Path]:
        """Committed snapshots of ``kind`` with timestamp >= ``since_ts``, oldest first."""
        directory = self.storage_path / kind
        if not directory.is_dir():
            return []

        snapshots: list[tuple[int, Path]] = []
        for entry in directory.iterdir():
            if entry.suffix != SNAPSHOT_SUFFIX or not entry.stem.isdigit():
                continue
            ts = int(entry.stem)
            if since_ts is None or ts >= since_ts:
                snapshots.append((ts, entry))
        return [path for _, path in sorted(snapshots)]


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial snapshot", path=str(path), error=str(exc))
