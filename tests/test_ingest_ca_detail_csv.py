import io
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from revenue_import.errors import CsvFormatError
from revenue_import.ingest import (
    CSV_COLUMNS,
    read_ca_detail_csv,
    render_template,
    transform_rows,
    write_records_csv,
)
from revenue_import.models import ReferenceMaps

DATA = Path(__file__).resolve().parent / "data"

MAPS = ReferenceMaps(tenant_id="tenant-1", entities_by_code={"CDP": "br-cdp", "PQ": "br-pq"})

HEADER = ";".join(CSV_COLUMNS)


def _read(text: str):
    return read_ca_detail_csv(io.StringIO(text), MAPS)


def test_mixed_file_row_errors_and_normalization():
    records = read_ca_detail_csv(DATA / "ca_detail_mixed.csv", MAPS)

    # The all-blank line is skipped; sequences stay contiguous.
    assert [r.import_sequence for r in records] == [1, 2, 3, 4, 5, 6, 7]
    assert [r.validation_error for r in records] == [
        None,
        'Branch "ZZZ" not found',
        'Invalid date "32/01/2024"',
        "Missing branch code",
        "Missing time",
        None,
        None,
    ]

    first = records[0]
    assert first.branch_id == "br-cdp"
    assert first.sale_date == date(2024, 1, 15)
    assert first.time == "07:30"
    assert first.amount_excl_tax == Decimal("1234.50")
    assert first.amount_incl_tax == Decimal("1358.95")

    # Branch codes are matched case-insensitively and shown upper-cased.
    assert records[2].branch_code == "CDP"
    assert records[2].branch_id == "br-cdp"

    night = records[5]
    assert night.time == "01:30"
    assert night.sale_date == date(2024, 1, 16)
    assert night.unit_price_excl_tax == Decimal(0)
    assert night.amount_incl_tax == Decimal(0)


def test_amounts_are_parsed_on_rows_with_errors():
    records = _read(f"{HEADER}\nZZZ;15/01/2024;12:00;D1;1,00;1,20;3,50;4,20\n")
    assert records[0].validation_error == 'Branch "ZZZ" not found'
    assert records[0].amount_excl_tax == Decimal("3.50")


def test_missing_columns_are_reported_together():
    with pytest.raises(CsvFormatError) as ei:
        _read("entite;date;heure;document;pu_ht;montant_ht\nCDP;15/01/2024;12:00;D;1;1\n")
    assert str(ei.value) == (
        "CSV header mismatch for CA detail import. Missing columns: pu_ttc, montant_ttc"
    )


def test_empty_file_and_header_only_file_are_rejected():
    with pytest.raises(CsvFormatError, match="no header row"):
        _read("")
    with pytest.raises(CsvFormatError, match="no data rows"):
        _read(HEADER + "\n;;;;;;;\n")


def test_csv_format_error_is_a_csv_error():
    import csv

    with pytest.raises(csv.Error):
        _read("")


def test_extra_columns_are_ignored_and_short_rows_padded():
    text = f"{HEADER};commentaire\nCDP;15/01/2024;12:00;D1;1,00;1,10;2,00;2,20;note;extra\nPQ;16/01/2024\n"
    records = _read(text)
    assert len(records) == 2
    assert records[0].validation_error is None
    assert records[1].time == ""
    assert records[1].validation_error == "Missing time"
    assert records[1].amount_excl_tax == Decimal(0)


def test_missing_file_raises_file_not_found(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        read_ca_detail_csv(tmp_path / "nope.csv", MAPS)


def test_unknown_branch_when_reference_maps_are_empty():
    records = read_ca_detail_csv(DATA / "ca_detail_valid.csv", ReferenceMaps.empty("tenant-1"))
    assert {r.validation_error for r in records} == {'Branch "CDP" not found'}


def test_transform_rows_accepts_dict_rows():
    rows = [{"entite": " cdp ", "date": "15/01/24", "heure": "8H", "document": None}]
    (record,) = transform_rows(rows, MAPS)
    assert record.branch_code == "CDP"
    assert record.time == "08:00"
    assert record.document == ""
    assert record.validation_error is None


def test_template_parses_without_errors():
    records = _read(render_template())
    assert len(records) == 4
    assert all(r.validation_error is None for r in records)
    assert [r.time for r in records] == ["07:30", "12:15", "19:45", "08:00"]


def test_write_records_csv_exports_enriched_table():
    records = _read(f"{HEADER}\nZZZ;15/01/2024;12:00;D1;1,5;1,65;1234,5;1358,95\n")
    out = io.StringIO()
    assert write_records_csv(records, out) == 1
    header, row = out.getvalue().splitlines()
    assert header.startswith("ligne;entite;date;heure")
    assert header.endswith(";type_service;sous_categorie;categorie;erreur")
    assert row == '1;ZZZ;15/01/2024;12:00;D1;1,50;1,65;1234,50;1358,95;;;;"Branch ""ZZZ"" not found"'
