# ruff: noqa: I001
"""Import driver: commit a simulated batch into the three revenue levels.

The batch is refused outright (nothing written, no upsert attempted) when it
is empty, the tenant is unknown, any record carries a validation error, or
a record was never resolved by simulation (branch, category or service missing).
Otherwise groups are processed sequentially, one upsert in flight at a time:

    revenue day -> its services -> their hour lines

A failed upsert is recorded as an :class:`ImportIssue` and skips only the
children of that node. Each revenue-day group is committed on its own, so a
re-run after partial failure relies on upsert idempotence.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from typing import cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice_db.client import session_scope
from .errors import CommitRefusedError, UpsertError, format_natural_key
from .logging_setup import get_logger, log_event
from .models import DetailRecord, ImportIssue, ImportProgress, ImportReport, Phase
from .persistence import (
    LEVEL_REVENUE_DAY,
    LEVEL_REVENUE_DAY_SERVICE,
    LEVEL_REVENUE_DAY_SERVICE_HOUR,
    upsert_revenue_day,
    upsert_revenue_day_service,
    upsert_revenue_day_service_hour,
)
from .reconcile import RevenueDayGroup, ServiceGroup, aggregate, is_aggregatable

_logger = get_logger("revenue_import.importer")

type ProgressCallback = Callable[[ImportProgress], None]

# Stable per-level messages so identical failures coalesce; the natural key
# and cause go into ``details``.
ISSUE_MESSAGES: dict[str, str] = {
    LEVEL_REVENUE_DAY: "Failed to process revenue day group (branch, date, category)",
    LEVEL_REVENUE_DAY_SERVICE: "Failed to process service type",
    LEVEL_REVENUE_DAY_SERVICE_HOUR: "Failed to process hour line",
}
COMMIT_ISSUE_MESSAGE = "Failed to commit revenue day group"


def check_commit_gate(records: Sequence[DetailRecord], *, tenant_id: str | None) -> None:
    """Raise :class:`CommitRefusedError` unless the whole batch is importable."""

    if not records:
        raise CommitRefusedError("No data to import")
    if not tenant_id:
        raise CommitRefusedError("Incomplete user profile: no tenant selected")
    invalid = sum(1 for r in records if r.validation_error)
    if invalid:
        raise CommitRefusedError(
            f"Import refused: {invalid} line(s) contain errors", invalid_count=invalid
        )
    unresolved = sum(1 for r in records if not is_aggregatable(r))
    if unresolved:
        raise CommitRefusedError(
            f"Import refused: {unresolved} line(s) not simulated", invalid_count=unresolved
        )


def coalesce_issues(issues: Iterable[ImportIssue]) -> list[ImportIssue]:
    """Merge issues with identical ``(type, message)``, keeping the first details.

    Order follows the first occurrence; ``count`` adds up.
    """

    merged: dict[tuple[str, str], ImportIssue] = {}
    for issue in issues:
        key = (issue.type, issue.message)
        prev = merged.get(key)
        if prev is None:
            merged[key] = ImportIssue(
                type=issue.type, message=issue.message, details=issue.details, count=issue.count
            )
        else:
            merged[key] = ImportIssue(
                type=prev.type,
                message=prev.message,
                details=prev.details,
                count=prev.count + issue.count,
            )
    return list(merged.values())


def _issue(err: UpsertError) -> ImportIssue:
    return ImportIssue(
        type=err.level,
        message=ISSUE_MESSAGES.get(err.level, err.level),
        details=f"{format_natural_key(err.natural_key)}, error: {err.reason}",
    )


class _Run:
    """Mutable state of one commit run."""

    def __init__(self, *, total: int, on_progress: ProgressCallback | None) -> None:
        self.total = total
        self.current = 0
        self.on_progress = on_progress
        self.revenue_days = 0
        self.revenue_day_services = 0
        self.revenue_day_service_hours = 0
        self.issues: list[ImportIssue] = []

    def progress(self, phase: Phase, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(
                ImportProgress(
                    current=self.current, total=self.total, phase=phase, message=message
                )
            )


def _write_services(
    session: Session, run: _Run, group: RevenueDayGroup, revenue_day_id: int
) -> tuple[int, int]:
    services = hours = 0
    day = group.sale_date.isoformat()
    for service in group.services.values():
        run.progress("revenue_day_service", f"Step 2/3: writing services for {day}")
        try:
            service_id = upsert_revenue_day_service(
                session,
                revenue_day_id=revenue_day_id,
                service_type_id=service.service_type_id,
                amount_excl_tax=service.amount_excl_tax,
                amount_incl_tax=service.amount_incl_tax,
            )
        except UpsertError as err:
            run.issues.append(_issue(err))
            continue
        services += 1
        run.progress("revenue_day_service_hour", f"Step 3/3: writing hour lines for {day}")
        hours += _write_hours(session, run, service, service_id)
    return services, hours


def _write_hours(session: Session, run: _Run, service: ServiceGroup, service_id: int) -> int:
    written = 0
    for leaf in service.leaves.values():
        try:
            upsert_revenue_day_service_hour(
                session,
                revenue_day_service_id=service_id,
                sale_time=leaf.time,
                document=leaf.document,
                unit_price_excl_tax=leaf.unit_price_excl_tax,
                unit_price_incl_tax=leaf.unit_price_incl_tax,
                amount_excl_tax=leaf.amount_excl_tax,
                amount_incl_tax=leaf.amount_incl_tax,
            )
        except UpsertError as err:
            run.issues.append(_issue(err))
            continue
        written += 1
    return written


def _process_group(session: Session, run: _Run, group: RevenueDayGroup, tenant_id: str) -> None:
    day = group.sale_date.isoformat()
    run.current += 1
    run.progress("revenue_day", f"Step 1/3: processing revenue day {day}")
    try:
        revenue_day_id = upsert_revenue_day(
            session,
            tenant_id=tenant_id,
            branch_id=group.branch_id,
            sale_date=group.sale_date,
            category_id=group.category_id,
            amount_excl_tax=group.amount_excl_tax,
            amount_incl_tax=group.amount_incl_tax,
        )
    except UpsertError as err:
        run.issues.append(_issue(err))
        return

    services, hours = _write_services(session, run, group, revenue_day_id)
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        run.issues.append(
            ImportIssue(
                type=LEVEL_REVENUE_DAY,
                message=COMMIT_ISSUE_MESSAGE,
                details=f"date={day}, error: {e.__class__.__name__}",
            )
        )
        return
    # Counted only once the group is durable.
    run.revenue_days += 1
    run.revenue_day_services += services
    run.revenue_day_service_hours += hours
    run.progress("revenue_day", f"Step 1/3: revenue day {day} written")


def commit_import(
    records: Sequence[DetailRecord],
    *,
    tenant_id: str | None,
    database_url: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> ImportReport:
    """Write a fully valid batch; see the module docstring for the policy.

    Raises :class:`CommitRefusedError` before touching the database when the
    gate refuses. Persistence failures never raise; they are reported in the
    returned :class:`ImportReport` with identical issues coalesced.
    """

    records = list(records)
    check_commit_gate(records, tenant_id=tenant_id)
    tenant = cast(str, tenant_id)

    run = _Run(total=len(records), on_progress=on_progress)
    run.progress("preparation", "Preparing data...")
    groups = aggregate(records)
    run.total = len(groups)
    run.progress("revenue_day", "Step 1/3: writing revenue days...")

    t0 = time.perf_counter()
    with session_scope(database_url=database_url) as session:
        for group in groups:
            _process_group(session, run, group, tenant)

    issues = coalesce_issues(run.issues)
    report = ImportReport(
        revenue_days=run.revenue_days,
        revenue_day_services=run.revenue_day_services,
        revenue_day_service_hours=run.revenue_day_service_hours,
        error_count=len(run.issues),
        issues=tuple(issues),
    )
    run.progress("completed", "Import finished")
    log_event(
        _logger,
        "importer:completed",
        tenant_id=tenant,
        groups=len(groups),
        revenue_days=report.revenue_days,
        revenue_day_services=report.revenue_day_services,
        revenue_day_service_hours=report.revenue_day_service_hours,
        errors=report.error_count,
        latency_ms=f"{(time.perf_counter() - t0) * 1000.0:.2f}",
    )
    return report


__all__ = [
    "ISSUE_MESSAGES",
    "ProgressCallback",
    "check_commit_gate",
    "coalesce_issues",
    "commit_import",
]
