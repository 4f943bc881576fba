# ruff: noqa: E402, I001
from __future__ import annotations

import sys
from pathlib import Path

# Make sure the workspace `packages/` dir is on sys.path so `revenue_import` is importable
_ROOT = Path(__file__).resolve().parents[2]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

from typer.testing import CliRunner

from revenue_import.cli import app
from revenue_import.ingest.templates import TEMPLATE_FILENAME, render_template
from tests.helpers.db import TENANT_ID, count_revenue_rows

DATA = _ROOT / "tests" / "data"

runner = CliRunner()


def _args(command: str, csv_path: Path, database_url: str, *extra: str) -> list[str]:
    return [
        command,
        "--csv-path",
        str(csv_path),
        "--tenant-id",
        TENANT_ID,
        "--database-url",
        database_url,
        *extra,
    ]


def test_template_to_stdout_and_directory(tmp_path: Path):
    result = runner.invoke(app, ["template"])
    assert result.exit_code == 0, result.output
    assert result.stdout == render_template()

    result = runner.invoke(app, ["template", "--output", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / TEMPLATE_FILENAME).read_text(encoding="utf-8") == render_template()


def test_e2e_template_check_then_import(tmp_path: Path, seeded_db: str):
    template = tmp_path / "ca.csv"
    assert runner.invoke(app, ["template", "-o", str(template)]).exit_code == 0

    export = tmp_path / "checked.csv"
    result = runner.invoke(app, _args("check", template, seeded_db, "--export", str(export)))
    assert result.exit_code == 0, result.output
    assert "Simulation succeeded" in result.output
    assert count_revenue_rows(seeded_db) == (0, 0, 0)
    lines = export.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 5
    assert lines[1].endswith(";PDJ;PETIT_DEJEUNER;RESTAURATION;")

    result = runner.invoke(app, _args("import", template, seeded_db))
    assert result.exit_code == 0, result.output
    assert "Import finished" in result.output
    assert count_revenue_rows(seeded_db) == (2, 4, 4)


def test_check_and_import_fail_on_invalid_rows(seeded_db: str):
    mixed = DATA / "ca_detail_mixed.csv"

    result = runner.invoke(app, _args("check", mixed, seeded_db, "--only-invalid"))
    assert result.exit_code == 1
    assert "(5 not validated)" in result.output

    result = runner.invoke(app, _args("import", mixed, seeded_db))
    assert result.exit_code == 1
    assert count_revenue_rows(seeded_db) == (0, 0, 0)


def test_cli_input_errors(tmp_path: Path, seeded_db: str):
    result = runner.invoke(app, _args("check", tmp_path / "missing.csv", seeded_db))
    assert result.exit_code == 1

    result = runner.invoke(app, _args("check", tmp_path / "data.xlsx", seeded_db))
    assert result.exit_code == 1

    # No tenant from the command line or the environment.
    result = runner.invoke(app, ["check", "--csv-path", str(DATA / "ca_detail_valid.csv")])
    assert result.exit_code == 1


def test_header_error_after_reference_failure_prints_each_notice_once(tmp_path: Path):
    bad_csv = tmp_path / "bad.csv"
    bad_csv.write_text("entite;date\nCDP;15/01/2024\n", encoding="utf-8")
    empty_db = f"sqlite+pysqlite:///{tmp_path / 'empty.db'}"

    result = runner.invoke(app, _args("check", bad_csv, empty_db))

    assert result.exit_code == 1
    assert result.output.count("Failed to load reference data") == 1
    assert result.output.count("CSV header mismatch") == 1
