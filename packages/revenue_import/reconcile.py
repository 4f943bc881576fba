"""Reconciliation: service-type enrichment ("simulate") and aggregation.

``simulate`` resolves each branch/date/time-valid record to a service type,
its sub-category and that sub-category's category. Categories missing from
the snapshot are fetched in one batch *before* any record is updated, so the
returned list is complete and final.

``aggregate`` groups valid records in memory into the three persisted levels:
(branch, date, category) -> service type -> (time, document).
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol, cast

from .logging_setup import get_logger, log_event
from .models import CategoryRef, DetailRecord, ReferenceMaps, ServiceTypeRef, Totals
from .normalizers import format_time
from .time_windows import find_service_type, is_night_hour

_logger = get_logger("revenue_import.reconcile")

type CategoryFetcher = Callable[[Sequence[str]], Mapping[str, CategoryRef]]


class NightHourObserver(Protocol):
    """Receives a call for every classified record with a 00:00-03:59 time."""

    def night_hour_seen(self) -> None: ...


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal(0))


# ---------------------------------------------------------------------------
# Simulate
# ---------------------------------------------------------------------------


def _classifiable(record: DetailRecord) -> bool:
    return record.validation_error is None and bool(record.branch_id) and bool(record.time)


def simulate(
    records: Iterable[DetailRecord],
    maps: ReferenceMaps,
    *,
    session: NightHourObserver | None = None,
    fetch_missing_categories: CategoryFetcher | None = None,
) -> list[DetailRecord]:
    """Return a new list with service type and categories attached.

    Records that already carry an error, or lack a resolved branch or a time,
    are returned unchanged. A record whose time matches no service window of
    its branch gets a ``validation_error`` naming the time; so does a matched
    service type whose sub-category or category cannot be resolved.
    """

    records = list(records)

    matched: dict[int, ServiceTypeRef | None] = {}
    for idx, record in enumerate(records):
        if not _classifiable(record):
            continue
        if session is not None and is_night_hour(record.time):
            session.night_hour_seen()
        candidates = maps.service_types_by_entity.get(record.branch_id or "", ())
        matched[idx] = find_service_type(record.time, candidates)

    # Resolve every missing category up front; attachment below is pure.
    categories: dict[str, CategoryRef] = dict(maps.categories_by_id)
    missing = sorted(
        {
            sub.category_id
            for st in matched.values()
            if st is not None and st.subcategory_id
            for sub in [maps.subcategories_by_id.get(st.subcategory_id)]
            if sub is not None and sub.category_id not in categories
        }
    )
    if missing and fetch_missing_categories is not None:
        categories.update(fetch_missing_categories(missing))

    out: list[DetailRecord] = []
    for idx, record in enumerate(records):
        if idx not in matched:
            out.append(record)
            continue
        out.append(_attach(record, matched[idx], maps, categories))

    invalid = sum(1 for r in out if r.validation_error)
    log_event(
        _logger,
        "reconcile:simulated",
        rows=len(out),
        classified=len(matched),
        invalid=invalid,
        fetched_categories=len(missing),
    )
    return out


def _attach(
    record: DetailRecord,
    service_type: ServiceTypeRef | None,
    maps: ReferenceMaps,
    categories: Mapping[str, CategoryRef],
) -> DetailRecord:
    if service_type is None:
        return dataclasses.replace(
            record, validation_error=f"No service type found for time {record.time}"
        )

    with_service = dataclasses.replace(
        record,
        service_type_id=service_type.id,
        service_type_code=service_type.code,
    )
    sub = maps.subcategories_by_id.get(service_type.subcategory_id or "")
    if sub is None:
        return dataclasses.replace(
            with_service,
            validation_error=f'Service type "{service_type.code}" has no active sub-category',
        )
    with_sub = dataclasses.replace(
        with_service, subcategory_id=sub.id, subcategory_code=sub.code
    )
    category = categories.get(sub.category_id)
    if category is None:
        return dataclasses.replace(
            with_sub, validation_error=f'Category of sub-category "{sub.code}" not found'
        )
    return dataclasses.replace(with_sub, category_id=category.id, category_code=category.code)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class HourLeaf:
    """One level-3 line: rows sharing ``(time, document)`` in a service.

    Amounts are summed; unit prices come from the first row seen.
    """

    time: str
    document: str
    unit_price_excl_tax: Decimal
    unit_price_incl_tax: Decimal
    amount_excl_tax: Decimal
    amount_incl_tax: Decimal
    rows: list[DetailRecord] = field(default_factory=list)

    @classmethod
    def start(cls, record: DetailRecord) -> HourLeaf:
        return cls(
            time=format_time(record.time),
            document=record.document or "",
            unit_price_excl_tax=record.unit_price_excl_tax,
            unit_price_incl_tax=record.unit_price_incl_tax,
            amount_excl_tax=record.amount_excl_tax,
            amount_incl_tax=record.amount_incl_tax,
            rows=[record],
        )

    def add(self, record: DetailRecord) -> None:
        self.amount_excl_tax += record.amount_excl_tax
        self.amount_incl_tax += record.amount_incl_tax
        self.rows.append(record)


@dataclass(slots=True)
class ServiceGroup:
    service_type_id: str
    rows: list[DetailRecord] = field(default_factory=list)
    leaves: dict[tuple[str, str], HourLeaf] = field(default_factory=dict)

    @property
    def amount_excl_tax(self) -> Decimal:
        return _sum(r.amount_excl_tax for r in self.rows)

    @property
    def amount_incl_tax(self) -> Decimal:
        return _sum(r.amount_incl_tax for r in self.rows)

    def add(self, record: DetailRecord) -> None:
        self.rows.append(record)
        leaf_key = (format_time(record.time), record.document or "")
        leaf = self.leaves.get(leaf_key)
        if leaf is None:
            self.leaves[leaf_key] = HourLeaf.start(record)
        else:
            leaf.add(record)


@dataclass(slots=True)
class RevenueDayGroup:
    branch_id: str
    sale_date: date
    category_id: str
    rows: list[DetailRecord] = field(default_factory=list)
    services: dict[str, ServiceGroup] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.branch_id, self.sale_date.isoformat(), self.category_id)

    @property
    def amount_excl_tax(self) -> Decimal:
        return _sum(r.amount_excl_tax for r in self.rows)

    @property
    def amount_incl_tax(self) -> Decimal:
        return _sum(r.amount_incl_tax for r in self.rows)

    @property
    def leaf_count(self) -> int:
        return sum(len(s.leaves) for s in self.services.values())

    def add(self, record: DetailRecord) -> None:
        self.rows.append(record)
        service_type_id = cast(str, record.service_type_id)
        group = self.services.get(service_type_id)
        if group is None:
            group = self.services[service_type_id] = ServiceGroup(service_type_id)
        group.add(record)


def is_aggregatable(record: DetailRecord) -> bool:
    return (
        record.validation_error is None
        and record.branch_id is not None
        and record.sale_date is not None
        and record.category_id is not None
        and record.service_type_id is not None
    )


def aggregate(records: Iterable[DetailRecord]) -> list[RevenueDayGroup]:
    """Group valid records; groups, services and leaves keep first-seen order."""

    groups: dict[tuple[str, str, str], RevenueDayGroup] = {}
    for record in records:
        if not is_aggregatable(record):
            continue
        branch_id = cast(str, record.branch_id)
        sale_date = cast(date, record.sale_date)
        category_id = cast(str, record.category_id)
        key = (branch_id, sale_date.isoformat(), category_id)
        group = groups.get(key)
        if group is None:
            group = groups[key] = RevenueDayGroup(
                branch_id=branch_id, sale_date=sale_date, category_id=category_id
            )
        group.add(record)
    return list(groups.values())


# ---------------------------------------------------------------------------
# Table helpers
# ---------------------------------------------------------------------------


def compute_totals(records: Iterable[DetailRecord]) -> Totals:
    records = list(records)
    return Totals(
        amount_excl_tax=_sum(r.amount_excl_tax for r in records),
        amount_incl_tax=_sum(r.amount_incl_tax for r in records),
        row_count=len(records),
        invalid_count=sum(1 for r in records if r.validation_error),
    )


def invalid_records(records: Iterable[DetailRecord]) -> list[DetailRecord]:
    """Rows that are not importable (the "only non-validated" filter)."""

    return [r for r in records if r.validation_error]


__all__ = [
    "CategoryFetcher",
    "HourLeaf",
    "NightHourObserver",
    "RevenueDayGroup",
    "ServiceGroup",
    "aggregate",
    "compute_totals",
    "invalid_records",
    "is_aggregatable",
    "simulate",
]
