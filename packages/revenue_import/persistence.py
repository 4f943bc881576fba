# ruff: noqa: I001
"""Persistence of imported revenue into the shared back-office database.

Functions here write the three revenue levels owned by ``libs/db``
(``backoffice_db.models.revenue``) through a session provided by
``backoffice_db.client``.

Every level goes through one primitive, :func:`upsert_returning_id`:

1. ``INSERT ... ON CONFLICT (<natural key>) DO UPDATE``, asking for
   ``RETURNING id`` when the backend supports it, inside a SAVEPOINT;
2. when no id comes back, ``SELECT id`` with the same natural-key predicate;
3. otherwise :class:`~revenue_import.errors.UpsertError` naming the level and
   the key. A synthetic id is never returned.

Repeating a call with the same key overwrites the amounts; it never adds.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice_db.models.revenue import RevenueDay, RevenueDayService, RevenueDayServiceHour
from .errors import UpsertError
from .logging_setup import get_logger, log_event

_logger = get_logger("revenue_import.persistence")

LEVEL_REVENUE_DAY = "revenue_day"
LEVEL_REVENUE_DAY_SERVICE = "revenue_day_service"
LEVEL_REVENUE_DAY_SERVICE_HOUR = "revenue_day_service_hour"

_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _to_decimal_2(raw: Any) -> Decimal:
    try:
        d = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"not a decimal amount: {raw!r}") from e
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_time(raw: str | time) -> time:
    if isinstance(raw, time):
        return raw
    s = raw.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"not a clock time: {raw!r}")


def supports_returning(dialect: Dialect) -> bool:
    return bool(getattr(dialect, "insert_returning", False))


def _select_id_by_key(session: Session, model: Any, natural_key: Mapping[str, Any]) -> int | None:
    stmt = select(model.id).where(*(getattr(model, c) == v for c, v in natural_key.items()))
    return session.execute(stmt).scalar_one_or_none()


def upsert_returning_id(
    session: Session,
    model: Any,
    *,
    level: str,
    conflict_columns: Sequence[str],
    values: Mapping[str, Any],
    update_columns: Sequence[str],
    use_returning: bool | None = None,
) -> int:
    """Insert or update one row of ``model`` and return its id.

    ``conflict_columns`` must match a unique constraint of the table.
    ``update_columns`` are overwritten from the incoming values on conflict
    (``updated_at`` is always refreshed). ``use_returning`` forces or disables
    ``RETURNING``; by default it follows the dialect.

    Store errors are wrapped in :class:`UpsertError` (chained); the SAVEPOINT
    is rolled back so the surrounding transaction stays usable.
    """

    natural_key = {c: values[c] for c in conflict_columns}
    dialect = session.get_bind().dialect
    insert_fn = _INSERTS.get(dialect.name)
    if insert_fn is None:
        raise UpsertError(level, natural_key, f"unsupported database dialect: {dialect.name}")
    returning = supports_returning(dialect) if use_returning is None else use_returning

    stmt = insert_fn(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[getattr(model, c) for c in conflict_columns],
        set_={
            **{c: getattr(stmt.excluded, c) for c in update_columns},
            "updated_at": func.now(),
        },
    )
    if returning:
        stmt = stmt.returning(model.id)

    path = "returning"
    try:
        with session.begin_nested():
            result = session.execute(stmt)
            row_id = result.scalar_one_or_none() if returning else None
            if row_id is None:
                # Backend gave no id back: look the row up by its natural key.
                path = "fallback_select"
                row_id = _select_id_by_key(session, model, natural_key)
    except SQLAlchemyError as e:
        log_event(
            _logger,
            "persistence:upsert_failed",
            level=level,
            error=e.__class__.__name__,
        )
        raise UpsertError(level, natural_key, f"store error: {e.__class__.__name__}") from e

    if row_id is None:
        raise UpsertError(level, natural_key, "no id returned and none found by natural key")
    _logger.debug("persistence:upsert level=%s id=%s path=%s", level, row_id, path)
    return int(row_id)


# ---- Level wrappers -------------------------------------------------------------


def _incl_tax(amount_excl_tax: Any, amount_incl_tax: Any | None) -> Decimal:
    # Missing tax-inclusive amount falls back to the tax-exclusive one.
    return _to_decimal_2(amount_excl_tax if amount_incl_tax is None else amount_incl_tax)


def upsert_revenue_day(
    session: Session,
    *,
    tenant_id: str,
    branch_id: str,
    sale_date: date,
    category_id: str,
    amount_excl_tax: Decimal,
    amount_incl_tax: Decimal | None = None,
    use_returning: bool | None = None,
) -> int:
    """Level 1, unique on ``(branch_id, sale_date, category_id)``."""

    values = {
        "tenant_id": tenant_id,
        "branch_id": branch_id,
        "sale_date": sale_date,
        "category_id": category_id,
        "amount_excl_tax": _to_decimal_2(amount_excl_tax),
        "amount_incl_tax": _incl_tax(amount_excl_tax, amount_incl_tax),
    }
    return upsert_returning_id(
        session,
        RevenueDay,
        level=LEVEL_REVENUE_DAY,
        conflict_columns=("branch_id", "sale_date", "category_id"),
        values=values,
        update_columns=("tenant_id", "amount_excl_tax", "amount_incl_tax"),
        use_returning=use_returning,
    )


def upsert_revenue_day_service(
    session: Session,
    *,
    revenue_day_id: int,
    service_type_id: str,
    amount_excl_tax: Decimal,
    amount_incl_tax: Decimal | None = None,
    use_returning: bool | None = None,
) -> int:
    """Level 2, unique on ``(revenue_day_id, service_type_id)``."""

    values = {
        "revenue_day_id": revenue_day_id,
        "service_type_id": service_type_id,
        "amount_excl_tax": _to_decimal_2(amount_excl_tax),
        "amount_incl_tax": _incl_tax(amount_excl_tax, amount_incl_tax),
    }
    return upsert_returning_id(
        session,
        RevenueDayService,
        level=LEVEL_REVENUE_DAY_SERVICE,
        conflict_columns=("revenue_day_id", "service_type_id"),
        values=values,
        update_columns=("amount_excl_tax", "amount_incl_tax"),
        use_returning=use_returning,
    )


def upsert_revenue_day_service_hour(
    session: Session,
    *,
    revenue_day_service_id: int,
    sale_time: str | time,
    document: str | None,
    unit_price_excl_tax: Decimal | None,
    unit_price_incl_tax: Decimal | None,
    amount_excl_tax: Decimal,
    amount_incl_tax: Decimal | None = None,
    use_returning: bool | None = None,
) -> int:
    """Level 3, unique on ``(revenue_day_service_id, sale_time, document)``.

    A missing document is stored as ``""`` so the key never contains NULL.
    """

    natural_key = {
        "revenue_day_service_id": revenue_day_service_id,
        "sale_time": sale_time,
        "document": document or "",
    }
    try:
        parsed_time = _to_time(sale_time)
    except ValueError as e:
        raise UpsertError(LEVEL_REVENUE_DAY_SERVICE_HOUR, natural_key, str(e)) from e

    values = {
        "revenue_day_service_id": revenue_day_service_id,
        "sale_time": parsed_time,
        "document": document or "",
        "unit_price_excl_tax": (
            _to_decimal_2(unit_price_excl_tax) if unit_price_excl_tax is not None else None
        ),
        "unit_price_incl_tax": (
            _to_decimal_2(unit_price_incl_tax) if unit_price_incl_tax is not None else None
        ),
        "amount_excl_tax": _to_decimal_2(amount_excl_tax),
        "amount_incl_tax": _incl_tax(amount_excl_tax, amount_incl_tax),
    }
    return upsert_returning_id(
        session,
        RevenueDayServiceHour,
        level=LEVEL_REVENUE_DAY_SERVICE_HOUR,
        conflict_columns=("revenue_day_service_id", "sale_time", "document"),
        values=values,
        update_columns=(
            "unit_price_excl_tax",
            "unit_price_incl_tax",
            "amount_excl_tax",
            "amount_incl_tax",
        ),
        use_returning=use_returning,
    )


__all__ = [
    "LEVEL_REVENUE_DAY",
    "LEVEL_REVENUE_DAY_SERVICE",
    "LEVEL_REVENUE_DAY_SERVICE_HOUR",
    "supports_returning",
    "upsert_returning_id",
    "upsert_revenue_day",
    "upsert_revenue_day_service",
    "upsert_revenue_day_service_hour",
]
