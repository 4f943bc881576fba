"""Adapter for the revenue (CA) detail CSV export.

CSV header (exact keys expected, ``;`` separated):
entite;date;heure;document;pu_ht;pu_ttc;montant_ht;montant_ttc

Each row is validated once into :class:`CaDetailCsvRow` (column-to-field
mapping below, versioned by ``COLUMN_MAPPING_VERSION``) and then converted to
a :class:`~revenue_import.models.DetailRecord`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...models import DetailRecord, ReferenceMaps
from ...normalizers import format_time, parse_amount, parse_date

COLUMN_MAPPING_VERSION = 1

# CSV column -> record field, in file order.
COLUMN_MAPPING: dict[str, str] = {
    "entite": "branch_code",
    "date": "raw_date",
    "heure": "raw_time",
    "document": "document",
    "pu_ht": "unit_price_excl_tax",
    "pu_ttc": "unit_price_incl_tax",
    "montant_ht": "amount_excl_tax",
    "montant_ttc": "amount_incl_tax",
}

CSV_COLUMNS: tuple[str, ...] = tuple(COLUMN_MAPPING)
REQUIRED_COLUMNS: frozenset[str] = frozenset(COLUMN_MAPPING)


class CaDetailCsvRow(BaseModel):
    """One raw CSV line, cells stripped; missing cells become ``""``."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    branch_code: str = Field(alias="entite")
    raw_date: str = Field(alias="date")
    raw_time: str = Field(alias="heure")
    document: str = Field(alias="document")
    unit_price_excl_tax: str = Field(alias="pu_ht")
    unit_price_incl_tax: str = Field(alias="pu_ttc")
    amount_excl_tax: str = Field(alias="montant_ht")
    amount_incl_tax: str = Field(alias="montant_ttc")

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def from_csv(cls, row: Mapping[Any, Any]) -> CaDetailCsvRow:
        # DictReader stores overflow cells under the ``None`` key.
        data = {k: row.get(k) for k in CSV_COLUMNS}
        return cls.model_validate(data)


def _row_error(
    *, branch_code: str, branch_id: str | None, raw_date: str, parsed: bool, time: str
) -> str | None:
    # First match wins.
    if not branch_code:
        return "Missing branch code"
    if branch_id is None:
        return f'Branch "{branch_code}" not found'
    if not parsed:
        return f'Invalid date "{raw_date}"'
    if not time:
        return "Missing time"
    return None


def to_detail_record(
    row: CaDetailCsvRow, *, import_sequence: int, maps: ReferenceMaps
) -> DetailRecord:
    branch_code = row.branch_code.upper()
    branch_id = maps.entities_by_code.get(branch_code) if branch_code else None
    sale_date = parse_date(row.raw_date)
    time = format_time(row.raw_time)
    return DetailRecord(
        import_sequence=import_sequence,
        branch_code=branch_code,
        branch_id=branch_id,
        raw_date=row.raw_date,
        sale_date=sale_date,
        time=time,
        document=row.document,
        unit_price_excl_tax=parse_amount(row.unit_price_excl_tax),
        unit_price_incl_tax=parse_amount(row.unit_price_incl_tax),
        amount_excl_tax=parse_amount(row.amount_excl_tax),
        amount_incl_tax=parse_amount(row.amount_incl_tax),
        validation_error=_row_error(
            branch_code=branch_code,
            branch_id=branch_id,
            raw_date=row.raw_date,
            parsed=sale_date is not None,
            time=time,
        ),
    )


def transform_rows(
    rows: Iterable[Mapping[Any, Any]], maps: ReferenceMaps
) -> Iterator[DetailRecord]:
    """Convert raw CSV rows to detail records, preserving input order.

    ``import_sequence`` is the 1-based position in ``rows``.
    """

    for seq, raw in enumerate(rows, start=1):
        yield to_detail_record(CaDetailCsvRow.from_csv(raw), import_sequence=seq, maps=maps)


__all__ = [
    "COLUMN_MAPPING",
    "COLUMN_MAPPING_VERSION",
    "CSV_COLUMNS",
    "REQUIRED_COLUMNS",
    "CaDetailCsvRow",
    "to_detail_record",
    "transform_rows",
]
