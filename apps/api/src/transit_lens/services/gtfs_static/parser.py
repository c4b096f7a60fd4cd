"""GTFS CSV parser with schema validation and streaming."""

from __future__ import annotations

import csv
import io
from typing import IO, TYPE_CHECKING

from transit_lens.errors import FilesystemError, SchemaValidationError
from transit_lens.logging import get_logger
from transit_lens.services.gtfs_static.normalizer import COERCERS

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from transit_lens.services.gtfs_static.schemas import TableSchema

logger = get_logger(__name__)

Record = dict[str, "str | None"]


class GtfsParser:
    """Parses GTFS CSV files into validated, text-typed records.

    Validation is fail-fast: the first row that violates the table schema
    raises SchemaValidationError, and callers must discard anything already
    yielded for that file.
    """

    def parse(
        self,
        stream: IO[bytes] | bytes,
        schema: TableSchema,
        filename: str | None = None,
    ) -> Iterator[Record]:
        """Parse one GTFS table, yielding one record per row.

        A leading UTF-8 byte-order mark is stripped before the header is read.
        Every schema field appears in each record; absent or blank optional
        values are None. Extra columns are ignored.

        Raises:
            SchemaValidationError: On a missing header, missing required
                column, or the first row that fails the schema.
        """
        name = filename or schema.filename
        if isinstance(stream, bytes):
            stream = io.BytesIO(stream)

        # utf-8-sig drops the BOM so it never ends up glued to the first column name
        text_io = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
        csv_reader = csv.DictReader(text_io)

        try:
            header = csv_reader.fieldnames
        except (csv.Error, UnicodeDecodeError) as exc:
            msg = f"Unreadable CSV header in {name}: {exc}"
            raise SchemaValidationError(msg, filename=name, line=1) from exc

        if header is None:
            msg = f"Empty CSV file: {name}"
            raise SchemaValidationError(msg, filename=name)

        columns = [column.strip() for column in header]
        csv_reader.fieldnames = columns
        missing = set(schema.required_fields) - set(columns)
        if missing:
            msg = f"Missing required columns in {name}: {sorted(missing)}"
            raise SchemaValidationError(msg, filename=name, line=1)

        extra_columns = set(columns) - set(schema.field_names)
        logger.info(
            "Parsing GTFS file",
            filename=name,
            required_columns=sorted(schema.required_fields),
            extra_columns=sorted(extra_columns) if extra_columns else None,
        )

        try:
            for row in csv_reader:
                yield self._validate_row(row, schema, name, csv_reader.line_num)
        except (csv.Error, UnicodeDecodeError) as exc:
            msg = f"Malformed CSV in {name} near line {csv_reader.line_num}: {exc}"
            raise SchemaValidationError(msg, filename=name, line=csv_reader.line_num) from exc

    def parse_file(self, path: Path, schema: TableSchema) -> Iterator[Record]:
        """Parse a GTFS file from an extracted feed directory."""
        try:
            handle = path.open("rb")
        except OSError as exc:
            msg = f"Cannot open GTFS file {path}: {exc}"
            raise FilesystemError(msg) from exc

        with handle:
            yield from self.parse(handle, schema, filename=path.name)

    @staticmethod
    def _validate_row(
        row: dict[str | None, str | list[str] | None],
        schema: TableSchema,
        filename: str,
        line: int,
    ) -> Record:
        record: Record = {}
        for spec in schema.fields:
            raw = row.get(spec.name)
            value = raw.strip() if isinstance(raw, str) else None

            if not value:
                if spec.required:
                    msg = f"{filename} line {line}: missing required field {spec.name!r}"
                    raise SchemaValidationError(msg, filename=filename, line=line)
                record[spec.name] = None
                continue

            try:
                COERCERS[spec.kind](value)
            except ValueError as exc:
                msg = (
                    f"{filename} line {line}: field {spec.name!r} value {value!r} "
                    f"is not a valid {spec.kind}"
                )
                raise SchemaValidationError(msg, filename=filename, line=line) from exc

            record[spec.name] = value
        return record
