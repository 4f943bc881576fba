# ruff: noqa: I001
"""CLI for the ``revenue_import`` package.

Typer-based console interface over :class:`~revenue_import.session.ImportSession`.
Environment variables (``DATABASE_URL``, ``REVENUE_IMPORT_TENANT_ID``,
``REVENUE_IMPORT_LOG_LEVEL``) are loaded from a local ``.env`` with
``python-dotenv`` before any command runs.

Commands
--------
- ``template``: write the example CSV.
- ``check``: parse and simulate a file, print the enriched table and totals.
- ``import``: parse, simulate and commit a file to the database.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from typer.models import OptionInfo

from .logging_setup import configure_logging
from .models import DetailRecord, ImportProgress, ImportReport, TenantContext, Totals
from .ingest.templates import format_amount

console = Console()
err_console = Console(stderr=True)

ACCEPTED_SUFFIXES = (".csv", ".txt")

_NOTICE_STYLES = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _print_notices(session, start: int) -> int:
    """Print notices appended since ``start``; returns the new offset."""

    for notice in session.notices[start:]:
        style = _NOTICE_STYLES.get(notice.level, "white")
        target = err_console if notice.level == "error" else console
        target.print(f"[{style}]{notice.message}[/{style}]")
    return len(session.notices)


def _records_table(records: list[DetailRecord], totals: Totals | None) -> Table:
    table = Table(title="CA detail lines")
    for name, justify in (
        ("#", "right"),
        ("Branch", "left"),
        ("Date", "left"),
        ("Time", "left"),
        ("Document", "left"),
        ("HT", "right"),
        ("TTC", "right"),
        ("Service", "left"),
        ("Category", "left"),
        ("Error", "left"),
    ):
        table.add_column(name, justify=justify)  # type: ignore[arg-type]
    if totals is not None:
        table.add_row(
            "",
            "TOTAL",
            "",
            "",
            f"{totals.row_count} line(s)",
            format_amount(totals.amount_excl_tax),
            format_amount(totals.amount_incl_tax),
            "",
            "",
            f"{totals.invalid_count} invalid" if totals.invalid_count else "",
            style="bold",
            end_section=True,
        )
    for r in records:
        table.add_row(
            str(r.import_sequence),
            r.branch_code,
            r.sale_date.isoformat() if r.sale_date else r.raw_date,
            r.time,
            r.document,
            format_amount(r.amount_excl_tax),
            format_amount(r.amount_incl_tax),
            r.service_type_code or "",
            r.category_code or "",
            f"[red]{r.validation_error}[/red]" if r.validation_error else "[green]OK[/green]",
        )
    return table


def _issues_table(report: ImportReport) -> Table:
    table = Table(title="Import errors")
    table.add_column("Type")
    table.add_column("Message")
    table.add_column("Details")
    table.add_column("Count", justify="right")
    for issue in report.issues:
        table.add_row(issue.type, issue.message, issue.details or "", str(issue.count))
    return table


def _print_progress(progress: ImportProgress) -> None:
    console.print(
        f"[cyan][{progress.phase}][/cyan] {progress.current}/{progress.total} {progress.message}"
    )


def _open_session(tenant_id: str | None, database_url: str | None):
    """Build a session for ``tenant_id`` and load its reference data."""

    # Deferred import keeps ``template`` free of database dependencies.
    from .session import ImportSession

    if not tenant_id:
        raise _fail("No tenant id. Pass --tenant-id or set REVENUE_IMPORT_TENANT_ID.")
    session = ImportSession(database_url=database_url)
    session.set_context(TenantContext(tenant_id=tenant_id, loading=False))
    return session


def _load(session, csv_path: Path, seen: int) -> None:
    from .errors import CsvFormatError

    if csv_path.suffix.lower() not in ACCEPTED_SUFFIXES:
        raise _fail(f"Please select a CSV or TXT file: {csv_path}")
    try:
        session.load_file(csv_path)
    except FileNotFoundError:
        raise _fail(f"File not found: {csv_path}") from None
    except PermissionError:
        raise _fail(f"Permission denied: {csv_path}") from None
    except CsvFormatError:
        # Already reported as an error notice by the session.
        _print_notices(session, seen)
        raise typer.Exit(1) from None


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as defaults below.
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a ';'-separated CA detail CSV file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
)
TENANT_OPTION: OptionInfo = typer.Option(
    "--tenant-id",
    envvar="REVENUE_IMPORT_TENANT_ID",
    help="Tenant (client contract) id scoping all reference data.",
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import daily revenue (CA) detail lines from a ';'-separated CSV. "
        "Loads DATABASE_URL and REVENUE_IMPORT_TENANT_ID from a local .env."
    ),
)


@app.command("template")
def template_cmd(
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the template here instead of stdout."),
    ] = None,
) -> None:
    """Write the example import file."""

    from .ingest.templates import TEMPLATE_FILENAME, render_template

    content = render_template()
    if output is None:
        typer.echo(content, nl=False)
        return
    if output.is_dir():
        output = output / TEMPLATE_FILENAME
    try:
        output.write_text(content, encoding="utf-8")
    except OSError as e:
        raise _fail(f"Cannot write {output}: {e}") from None
    console.print(f"[green]Template written:[/green] {output}")


@app.command("check")
def check_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    tenant_id: Annotated[str | None, TENANT_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    only_invalid: Annotated[
        bool, typer.Option("--only-invalid", help="Show only lines that are not importable.")
    ] = False,
    export: Annotated[
        Path | None, typer.Option("--export", help="Write the enriched table as CSV.")
    ] = None,
) -> None:
    """Parse and simulate a file without writing to the database."""

    from .ingest.templates import write_records_csv

    session = _open_session(tenant_id, database_url)
    seen = _print_notices(session, 0)
    _load(session, csv_path, seen)
    seen = _print_notices(session, seen)
    session.simulate()
    seen = _print_notices(session, seen)

    shown = session.invalid_records() if only_invalid else session.records
    console.print(_records_table(shown, session.totals()))
    if only_invalid and len(shown) != len(session.records):
        console.print(f"({len(shown)} not validated)")

    if export is not None:
        try:
            with export.open("w", encoding="utf-8", newline="") as f:
                count = write_records_csv(session.records, f)
        except OSError as e:
            raise _fail(f"Cannot write {export}: {e}") from None
        console.print(f"[green]Exported {count} line(s):[/green] {export}")

    if session.invalid_records():
        raise typer.Exit(1)


@app.command("import")
def import_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    tenant_id: Annotated[str | None, TENANT_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Parse, simulate and commit a file to the database."""

    from .errors import CommitRefusedError

    session = _open_session(tenant_id, database_url)
    seen = _print_notices(session, 0)
    _load(session, csv_path, seen)
    seen = _print_notices(session, seen)
    session.simulate()
    seen = _print_notices(session, seen)

    try:
        report = session.commit(on_progress=_print_progress)
    except CommitRefusedError:
        _print_notices(session, seen)
        raise typer.Exit(1) from None
    _print_notices(session, seen)

    if report.issues:
        console.print(_issues_table(report))
    if not report.ok:
        raise typer.Exit(1)


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m revenue_import.cli`
    app()
