"""Template and export files for the CA detail import.

``render_template`` produces the downloadable example file; ``write_records_csv``
writes the enriched table (input columns, resolved references, error) in the
same ``;``-separated, decimal-comma dialect.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from decimal import Decimal
from typing import TextIO

from ..models import DetailRecord
from .adapters.ca_detail_csv import CSV_COLUMNS
from .utils import DELIMITER

TEMPLATE_FILENAME = "template_import_ca_detail.csv"

TEMPLATE_ROWS: tuple[tuple[str, ...], ...] = (
    ("CDP", "15/01/2024", "07:30", "TICKET001", "15,50", "17,05", "15,50", "17,05"),
    ("CDP", "15/01/2024", "12:15", "TICKET002", "25,00", "27,50", "50,00", "55,00"),
    ("PQ", "16/01/2024", "19:45", "TICKET003", "32,50", "35,75", "97,50", "107,25"),
    ("PQ", "16/01/2024", "8H", "TICKET004", "12,00", "13,20", "24,00", "26,40"),
)

EXPORT_COLUMNS: tuple[str, ...] = (
    "ligne",
    *CSV_COLUMNS,
    "type_service",
    "sous_categorie",
    "categorie",
    "erreur",
)


def render_template() -> str:
    lines = [DELIMITER.join(CSV_COLUMNS), *(DELIMITER.join(r) for r in TEMPLATE_ROWS)]
    return "\n".join(lines) + "\n"


def format_amount(value: Decimal) -> str:
    """``Decimal("1234.5")`` -> ``"1234,50"``."""

    return f"{value:.2f}".replace(".", ",")


def write_records_csv(records: Iterable[DetailRecord], stream: TextIO) -> int:
    """Write the enriched table to ``stream``; returns the number of data rows."""

    writer = csv.writer(stream, delimiter=DELIMITER, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    count = 0
    for r in records:
        writer.writerow(
            [
                r.import_sequence,
                r.branch_code,
                r.raw_date,
                r.time,
                r.document,
                format_amount(r.unit_price_excl_tax),
                format_amount(r.unit_price_incl_tax),
                format_amount(r.amount_excl_tax),
                format_amount(r.amount_incl_tax),
                r.service_type_code or "",
                r.subcategory_code or "",
                r.category_code or "",
                r.validation_error or "",
            ]
        )
        count += 1
    return count


__all__ = [
    "EXPORT_COLUMNS",
    "TEMPLATE_FILENAME",
    "TEMPLATE_ROWS",
    "format_amount",
    "render_template",
    "write_records_csv",
]
