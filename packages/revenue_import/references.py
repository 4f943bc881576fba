# ruff: noqa: I001
"""Reference data loading for one tenant.

Builds the :class:`~revenue_import.models.ReferenceMaps` snapshot from the
active branches, service types, sub-categories and categories of a tenant.
The four loads are independent and run concurrently through :func:`p_map`,
each in its own short session; the snapshot is only built once all of them
have returned.
"""

from __future__ import annotations

import os
import time as _time
from collections.abc import Callable, Iterable, Sequence
from datetime import time
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice_db.client import get_engine, session_scope
from backoffice_db.models.reference import Branch, FlowCategory, FlowSubCategory, ServiceType

from .errors import ReferenceLoadError
from .logging_setup import get_logger, log_event
from .models import CategoryRef, ReferenceMaps, ServiceTypeRef, SubCategoryRef
from .pmap import p_map, resolve_concurrency

_logger = get_logger("revenue_import.references")

CONCURRENCY_ENV = "REVENUE_IMPORT_REFERENCE_CONCURRENCY"

type _Rows = list[Any]


def _format_window_bound(value: time | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    s = str(value).strip()
    return s or None


# ---- Individual loads (one session each) ------------------------------------


def _load_branches(session: Session, tenant_id: str) -> _Rows:
    stmt = (
        select(Branch.id, Branch.code)
        .where(Branch.tenant_id == tenant_id, Branch.is_active.is_(True))
        .order_by(Branch.code, Branch.id)
    )
    return list(session.execute(stmt).all())


def _load_service_types(session: Session, tenant_id: str) -> _Rows:
    # Joined with the linked sub-category so a service type whose sub-category
    # is outside the sub-category load still resolves its category.
    stmt = (
        select(
            ServiceType.id,
            ServiceType.code,
            ServiceType.label,
            ServiceType.branch_id,
            ServiceType.window_start,
            ServiceType.window_end,
            ServiceType.subcategory_id,
            FlowSubCategory.code.label("subcategory_code"),
            FlowSubCategory.label.label("subcategory_label"),
            FlowSubCategory.category_id.label("subcategory_category_id"),
        )
        .outerjoin(
            FlowSubCategory,
            and_(
                FlowSubCategory.id == ServiceType.subcategory_id,
                FlowSubCategory.is_active.is_(True),
            ),
        )
        .where(ServiceType.tenant_id == tenant_id, ServiceType.is_active.is_(True))
        .order_by(ServiceType.branch_id, ServiceType.window_start, ServiceType.code)
    )
    return list(session.execute(stmt).all())


def _load_subcategories(session: Session, tenant_id: str) -> _Rows:
    stmt = (
        select(
            FlowSubCategory.id,
            FlowSubCategory.code,
            FlowSubCategory.label,
            FlowSubCategory.category_id,
        )
        .where(FlowSubCategory.tenant_id == tenant_id, FlowSubCategory.is_active.is_(True))
        .order_by(FlowSubCategory.code)
    )
    return list(session.execute(stmt).all())


def _load_categories(session: Session, tenant_id: str) -> _Rows:
    stmt = (
        select(FlowCategory.id, FlowCategory.code, FlowCategory.label, FlowCategory.branch_id)
        .where(FlowCategory.tenant_id == tenant_id, FlowCategory.is_active.is_(True))
        .order_by(FlowCategory.code)
    )
    return list(session.execute(stmt).all())


_LOADERS: dict[str, Callable[[Session, str], _Rows]] = {
    "branches": _load_branches,
    "service_types": _load_service_types,
    "subcategories": _load_subcategories,
    "categories": _load_categories,
}


# ---- Snapshot assembly --------------------------------------------------------


def build_reference_maps(
    tenant_id: str,
    *,
    branches: Iterable[Any],
    service_types: Iterable[Any],
    subcategories: Iterable[Any],
    categories: Iterable[Any],
) -> ReferenceMaps:
    """Index loaded rows into a :class:`ReferenceMaps` snapshot.

    Branch codes are keyed upper-cased and trimmed. Service types keep their
    load order within each branch.
    """

    entities_by_code: dict[str, str] = {}
    for row in branches:
        code = (row.code or "").strip().upper()
        if code:
            entities_by_code.setdefault(code, row.id)

    subcategories_by_id = {
        row.id: SubCategoryRef(
            id=row.id, code=row.code, label=row.label, category_id=row.category_id
        )
        for row in subcategories
    }

    by_entity: dict[str, list[ServiceTypeRef]] = {}
    for row in service_types:
        by_entity.setdefault(row.branch_id, []).append(
            ServiceTypeRef(
                id=row.id,
                code=row.code,
                label=row.label,
                window_start=_format_window_bound(row.window_start),
                window_end=_format_window_bound(row.window_end),
                subcategory_id=row.subcategory_id,
            )
        )
        sub_id = row.subcategory_id
        if sub_id and sub_id not in subcategories_by_id and row.subcategory_category_id:
            subcategories_by_id[sub_id] = SubCategoryRef(
                id=sub_id,
                code=row.subcategory_code,
                label=row.subcategory_label,
                category_id=row.subcategory_category_id,
            )

    categories_by_id = {
        row.id: CategoryRef(id=row.id, code=row.code, label=row.label, branch_id=row.branch_id)
        for row in categories
    }

    return ReferenceMaps(
        tenant_id=tenant_id,
        entities_by_code=entities_by_code,
        service_types_by_entity={k: tuple(v) for k, v in by_entity.items()},
        subcategories_by_id=subcategories_by_id,
        categories_by_id=categories_by_id,
    )


def load_reference_maps(
    tenant_id: str,
    *,
    database_url: str | None = None,
    concurrency: int | None = None,
) -> ReferenceMaps:
    """Load the active reference data of ``tenant_id`` and build the maps.

    ``concurrency`` defaults to ``REVENUE_IMPORT_REFERENCE_CONCURRENCY``
    (default 4, capped at 8). Any failure raises :class:`ReferenceLoadError`
    chained to the original error; no partial snapshot is returned.
    """

    if not tenant_id:
        raise ReferenceLoadError("cannot load reference data without a tenant id")

    workers = resolve_concurrency(
        concurrency if concurrency is not None else os.getenv(CONCURRENCY_ENV)
    )
    t0 = _time.perf_counter()

    def _run(name: str) -> _Rows:
        with session_scope(database_url=database_url) as session:
            return _LOADERS[name](session, tenant_id)

    try:
        # Initialize the shared engine before fanning out to worker threads.
        get_engine(database_url=database_url)
        names = list(_LOADERS)
        results = dict(zip(names, p_map(names, _run, concurrency=workers), strict=True))
    except (SQLAlchemyError, RuntimeError) as e:
        log_event(
            _logger,
            "references:load_failed",
            tenant_id=tenant_id,
            error=e.__class__.__name__,
        )
        raise ReferenceLoadError(f"failed to load reference data: {e}") from e

    maps = build_reference_maps(tenant_id, **results)
    log_event(
        _logger,
        "references:loaded",
        tenant_id=tenant_id,
        branches=len(maps.entities_by_code),
        service_types=sum(len(v) for v in maps.service_types_by_entity.values()),
        subcategories=len(maps.subcategories_by_id),
        categories=len(maps.categories_by_id),
        latency_ms=f"{(_time.perf_counter() - t0) * 1000.0:.2f}",
    )
    return maps


def fetch_categories(
    ids: Sequence[str],
    *,
    tenant_id: str | None = None,
    database_url: str | None = None,
) -> dict[str, CategoryRef]:
    """Point lookup of categories by id, regardless of the active flag.

    Used to resolve categories referenced by a sub-category but missing from
    the snapshot. Unknown ids are simply absent from the result.
    """

    wanted = sorted({i for i in ids if i})
    if not wanted:
        return {}
    stmt = select(
        FlowCategory.id, FlowCategory.code, FlowCategory.label, FlowCategory.branch_id
    ).where(FlowCategory.id.in_(wanted))
    if tenant_id:
        stmt = stmt.where(FlowCategory.tenant_id == tenant_id)
    try:
        with session_scope(database_url=database_url) as session:
            rows = session.execute(stmt).all()
    except SQLAlchemyError as e:
        raise ReferenceLoadError(f"failed to fetch categories: {e}") from e
    log_event(_logger, "references:categories_fetched", requested=len(wanted), found=len(rows))
    return {
        row.id: CategoryRef(id=row.id, code=row.code, label=row.label, branch_id=row.branch_id)
        for row in rows
    }


__all__ = [
    "CONCURRENCY_ENV",
    "build_reference_maps",
    "fetch_categories",
    "load_reference_maps",
]
