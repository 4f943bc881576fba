"""Import session: the state one user works with while importing a file.

:class:`ImportSession` owns the tenant context, the reference snapshot, the
current records, the append-only notice list and the one-time night-hour
flag. It turns typed errors from the lower layers into notices, the same way
the screen shows toasts, and re-raises only what the caller must handle.
"""

from __future__ import annotations

from collections.abc import Callable
from os import PathLike
from typing import TextIO

from .errors import CommitRefusedError, CsvFormatError, ReferenceLoadError
from .importer import ProgressCallback, commit_import
from .ingest.utils import read_ca_detail_csv
from .logging_setup import get_logger, log_event
from .models import (
    DetailRecord,
    ImportReport,
    Notice,
    NoticeLevel,
    ReferenceMaps,
    TenantContext,
    Totals,
)
from .reconcile import compute_totals, invalid_records, simulate
from .references import fetch_categories, load_reference_maps
from .time_windows import NIGHT_NOTICE

_logger = get_logger("revenue_import.session")

type MapsLoader = Callable[[str], ReferenceMaps]


class ImportSession:
    """Stateful facade over parse, simulate and commit for one tenant.

    ``maps_loader`` defaults to :func:`load_reference_maps` bound to
    ``database_url``; tests may inject their own.
    """

    def __init__(
        self,
        *,
        database_url: str | None = None,
        maps_loader: MapsLoader | None = None,
    ) -> None:
        self.database_url = database_url
        self._maps_loader = maps_loader or (
            lambda tenant_id: load_reference_maps(tenant_id, database_url=database_url)
        )
        self.context = TenantContext(tenant_id=None, loading=True)
        self.maps = ReferenceMaps.empty()
        self.records: list[DetailRecord] = []
        self.notices: list[Notice] = []
        self.night_notice_shown = False
        self.last_report: ImportReport | None = None

    # ---- notices ------------------------------------------------------------

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self.notices.append(notice)
        return notice

    def night_hour_seen(self) -> None:
        """Show the night-hour attribution notice once per session."""

        if self.night_notice_shown:
            return
        self.night_notice_shown = True
        self.notify("info", NIGHT_NOTICE)

    # ---- tenant context -----------------------------------------------------

    @property
    def tenant_id(self) -> str | None:
        return self.context.tenant_id

    def set_context(self, context: TenantContext) -> None:
        """Adopt a new profile context, reloading maps when the tenant changes.

        Nothing is loaded while the profile is loading or has no tenant. A
        reference-load failure leaves an empty snapshot behind; rows parsed
        against it then fail with "not found".
        """

        previous = self.context.tenant_id
        self.context = context
        if context.loading or not context.tenant_id:
            return
        if context.tenant_id == previous and self.maps.tenant_id == context.tenant_id:
            return
        self.reload_references()

    def reload_references(self) -> ReferenceMaps:
        tenant_id = self.context.tenant_id
        if not tenant_id:
            self.maps = ReferenceMaps.empty()
            return self.maps
        try:
            self.maps = self._maps_loader(tenant_id)
        except ReferenceLoadError as e:
            log_event(_logger, "session:reference_load_failed", tenant_id=tenant_id)
            self.maps = ReferenceMaps.empty(tenant_id)
            self.notify("error", f"Failed to load reference data: {e}")
        return self.maps

    # ---- workflow -------------------------------------------------------------

    def load_file(self, source: str | PathLike[str] | TextIO) -> list[DetailRecord]:
        """Parse a file into records, replacing any previous batch."""

        self.records = []
        self.last_report = None
        try:
            records = read_ca_detail_csv(source, self.maps)
        except CsvFormatError as e:
            self.notify("error", str(e))
            raise
        self.records = records
        invalid = len(invalid_records(records))
        if invalid:
            self.notify(
                "warning", f"File parsed with {invalid} error(s) on {len(records)} line(s)"
            )
        else:
            self.notify("success", f"File parsed successfully: {len(records)} line(s) found")
        return records

    def simulate(self) -> list[DetailRecord]:
        if not self.records:
            self.notify("error", "No data to simulate")
            return []

        def _fetch(ids):
            return fetch_categories(ids, tenant_id=self.tenant_id, database_url=self.database_url)

        try:
            self.records = simulate(
                self.records, self.maps, session=self, fetch_missing_categories=_fetch
            )
        except ReferenceLoadError as e:
            self.notify("error", f"Simulation failed: {e}")
            return self.records

        invalid = len(invalid_records(self.records))
        if invalid:
            self.notify(
                "warning",
                f"Simulation finished with {invalid} error(s) on {len(self.records)} line(s)",
            )
        else:
            self.notify(
                "success", f"Simulation succeeded: all {len(self.records)} lines are valid"
            )
        return self.records

    def commit(self, on_progress: ProgressCallback | None = None) -> ImportReport:
        """Commit the current batch; clears it once at least one group is written."""

        if self.context.loading:
            message = "User profile is still loading"
            self.notify("error", message)
            raise CommitRefusedError(message)
        try:
            report = commit_import(
                self.records,
                tenant_id=self.tenant_id,
                database_url=self.database_url,
                on_progress=on_progress,
            )
        except CommitRefusedError as e:
            self.notify("error", str(e))
            raise
        self.last_report = report
        self.notify(
            "success" if report.ok else "warning",
            (
                f"Import finished: {report.revenue_days} revenue day(s), "
                f"{report.revenue_day_services} service line(s), "
                f"{report.revenue_day_service_hours} hour line(s), "
                f"{report.error_count} error(s)"
            ),
        )
        if report.revenue_days > 0:
            self.records = []
        return report

    # ---- table helpers --------------------------------------------------------

    def totals(self) -> Totals:
        return compute_totals(self.records)

    def invalid_records(self) -> list[DetailRecord]:
        return invalid_records(self.records)


__all__ = ["ImportSession", "MapsLoader"]
