"""Ingest utilities shared by the CLI and :class:`~revenue_import.session.ImportSession`.

Exposes a single loader turning a CA detail CSV (path or open text stream)
into detail records. File-level problems raise :class:`CsvFormatError` and
nothing is returned; row-level problems are carried on each record.
"""

from __future__ import annotations

import csv
from os import PathLike
from pathlib import Path
from typing import TextIO

from ..errors import CsvFormatError
from ..models import DetailRecord, ReferenceMaps
from .adapters.ca_detail_csv import CSV_COLUMNS, transform_rows

DELIMITER = ";"


def _normalize_header(name: str | None) -> str:
    return (name or "").replace("\ufeff", "").strip().lower()


def _is_blank(row: dict) -> bool:
    return all(not v.strip() for v in row.values() if isinstance(v, str))


def _read_records(f: TextIO, *, name: str, maps: ReferenceMaps) -> list[DetailRecord]:
    try:
        reader = csv.DictReader(f, delimiter=DELIMITER)
        fieldnames = reader.fieldnames
        headers = [_normalize_header(h) for h in fieldnames or []]
        if not any(headers):
            raise CsvFormatError(f"CSV appears to have no header row: {name}")
        missing = [c for c in CSV_COLUMNS if c not in headers]
        if missing:
            raise CsvFormatError(
                "CSV header mismatch for CA detail import. Missing columns: " + ", ".join(missing)
            )
        reader.fieldnames = headers
        rows = [row for row in reader if not _is_blank(row)]
    except CsvFormatError:
        raise
    except csv.Error as e:
        raise CsvFormatError(f"Failed to parse CSV {name}: {e}") from e
    except UnicodeDecodeError as e:
        raise CsvFormatError(f"CSV is not valid UTF-8: {name}") from e

    if not rows:
        raise CsvFormatError(f"CSV contains no data rows: {name}")
    return list(transform_rows(rows, maps))


def read_ca_detail_csv(
    source: str | PathLike[str] | TextIO, maps: ReferenceMaps
) -> list[DetailRecord]:
    """Read a CA detail CSV and return one record per data line.

    Paths are opened as UTF-8 with an optional BOM. Raises
    ``FileNotFoundError``/``PermissionError`` from opening the file and
    :class:`CsvFormatError` for a missing header, missing required columns,
    a file without data rows, or malformed CSV.
    """

    if isinstance(source, (str, PathLike)):
        p = Path(source)
        with p.open(encoding="utf-8-sig", newline="") as f:
            return _read_records(f, name=str(p), maps=maps)
    return _read_records(source, name=getattr(source, "name", "<stream>"), maps=maps)


__all__ = ["DELIMITER", "read_ca_detail_csv"]
