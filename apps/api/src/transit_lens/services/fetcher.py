"""Feed fetcher for static GTFS archives and GTFS-RT protobuf payloads."""

from __future__ import annotations

import asyncio
import io
import shutil
import zipfile
from pathlib import Path

import httpx

from transit_lens.errors import ArchiveError, FilesystemError, NetworkError
from transit_lens.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 30

# ZIP magic bytes
ZIP_MAGIC = b"PK\x03\x04"


class FeedFetcher:
    """Downloads remote feeds.

    No retry: a failed fetch fails the current cycle and the scheduler's
    next tick tries again.
    """

    def __init__(self, timeout_sec: float = DEFAULT_TIMEOUT_SEC) -> None:
        self.timeout_sec = timeout_sec

    async def fetch(self, url: str, headers: dict[str, str] | None = None) -> bytes:
        """Download a resource and return its body.

        Raises:
            NetworkError: On transport failure or a non-success status.
        """
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_sec),
                follow_redirects=True,
            ) as client:
                response = await client.get(url, headers=headers or {})
                response.raise_for_status()
                data = response.content
        except httpx.HTTPStatusError as exc:
            msg = f"GET {url} returned HTTP {exc.response.status_code}"
            raise NetworkError(msg) from exc
        except httpx.RequestError as exc:
            msg = f"GET {url} failed: {type(exc).__name__}: {exc}"
            raise NetworkError(msg) from exc

        logger.info("Feed downloaded", url=url, size_bytes=len(data))
        return data

    async def fetch_archive(
        self,
        url: str,
        scratch_root: Path,
        ingest_ts: int,
        headers: dict[str, str] | None = None,
    ) -> Path:
        """Download a zipped GTFS feed and unpack it into a scratch directory.

        The directory is ``scratch_root / str(ingest_ts)``; the caller owns it
        and must remove it when done.

        Raises:
            NetworkError: If the download fails.
            ArchiveError: If the payload is not a usable zip archive.
            FilesystemError: If the scratch directory cannot be written.
        """
        data = await self.fetch(url, headers)
        target = scratch_root / str(ingest_ts)
        await asyncio.to_thread(extract_archive, data, target)
        return target


def extract_archive(data: bytes, target: Path) -> list[str]:
    """Unpack zip bytes into ``target``, returning the extracted member names.

    On failure nothing is left behind in ``target``.
    """
    if len(data) < 4 or data[:4] != ZIP_MAGIC:
        msg = "Downloaded content is not a valid ZIP file"
        raise ArchiveError(msg)

    try:
        target.mkdir(parents=True, exist_ok=False)
    except OSError as exc:
        msg = f"Cannot create scratch directory {target}: {exc}"
        raise FilesystemError(msg) from exc

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
            root = target.resolve()
            for name in names:
                destination = (target / name).resolve()
                if not destination.is_relative_to(root):
                    msg = f"Archive member escapes extraction directory: {name!r}"
                    raise ArchiveError(msg)
            bad_member = archive.testzip()
            if bad_member is not None:
                msg = f"Corrupt archive member: {bad_member}"
                raise ArchiveError(msg)
            archive.extractall(target)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as exc:
        shutil.rmtree(target, ignore_errors=True)
        msg = f"Corrupt GTFS archive: {exc}"
        raise ArchiveError(msg) from exc
    except ArchiveError:
        shutil.rmtree(target, ignore_errors=True)
        raise
    except OSError as exc:
        shutil.rmtree(target, ignore_errors=True)
        msg = f"Cannot extract archive into {target}: {exc}"
        raise FilesystemError(msg) from exc

    logger.info("GTFS archive extracted", path=str(target), files=len(names))
    return names
