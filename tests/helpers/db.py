"""DB helpers for tests: bootstrap a temporary SQLite DB and seed reference data."""

from __future__ import annotations

from datetime import time
from pathlib import Path

from backoffice_db import Base
from backoffice_db.client import get_engine, session_scope
from backoffice_db.models.reference import Branch, FlowCategory, FlowSubCategory, ServiceType
from backoffice_db.models.revenue import RevenueDay, RevenueDayService, RevenueDayServiceHour
from sqlalchemy import func, select

TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"

BRANCH_CDP = "br-cdp"
BRANCH_PQ = "br-pq"
CATEGORY_FOOD = "cat-food"
SUBCATEGORIES = {
    "sub-breakfast": "PETIT_DEJEUNER",
    "sub-lunch": "DEJEUNER",
    "sub-dinner": "DINER",
    "sub-night": "NUIT",
}

# (code, start, end, sub-category id); the night window spans midnight.
_SERVICE_WINDOWS: tuple[tuple[str, time, time, str | None], ...] = (
    ("PDJ", time(6, 0), time(10, 59), "sub-breakfast"),
    ("DEJ", time(11, 0), time(14, 59), "sub-lunch"),
    ("DIN", time(18, 0), time(22, 59), "sub-dinner"),
    ("NUIT", time(23, 0), time(3, 0), "sub-night"),
)


def service_type_id(branch_id: str, code: str) -> str:
    return f"st-{branch_id.removeprefix('br-')}-{code.lower()}"


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    return url


def seed_reference_data(*, database_url: str, tenant_id: str = TENANT_ID) -> None:
    """Insert two branches (CDP, PQ) with four service windows each.

    Also inserts rows that must never be loaded: an inactive branch, an
    inactive service type and a branch of another tenant.
    """

    with session_scope(database_url=database_url) as session:
        session.add_all(
            [
                Branch(id=BRANCH_CDP, tenant_id=tenant_id, code="CDP", label="Cours du Parc"),
                Branch(id=BRANCH_PQ, tenant_id=tenant_id, code="pq", label="Place du Quai"),
                Branch(id="br-old", tenant_id=tenant_id, code="OLD", is_active=False),
                Branch(id="br-other", tenant_id=OTHER_TENANT_ID, code="XYZ"),
                FlowCategory(id=CATEGORY_FOOD, tenant_id=tenant_id, code="RESTAURATION"),
            ]
        )
        session.flush()
        session.add_all(
            FlowSubCategory(id=sub_id, tenant_id=tenant_id, category_id=CATEGORY_FOOD, code=code)
            for sub_id, code in SUBCATEGORIES.items()
        )
        session.flush()
        for branch_id in (BRANCH_CDP, BRANCH_PQ):
            for code, start, end, sub_id in _SERVICE_WINDOWS:
                session.add(
                    ServiceType(
                        id=service_type_id(branch_id, code),
                        tenant_id=tenant_id,
                        branch_id=branch_id,
                        code=code,
                        window_start=start,
                        window_end=end,
                        subcategory_id=sub_id,
                    )
                )
        session.add(
            ServiceType(
                id="st-cdp-old",
                tenant_id=tenant_id,
                branch_id=BRANCH_CDP,
                code="OLD",
                window_start=time(0, 0),
                window_end=time(23, 59),
                is_active=False,
            )
        )


def count_revenue_rows(database_url: str) -> tuple[int, int, int]:
    """Row counts of the three revenue levels."""

    with session_scope(database_url=database_url) as session:
        return tuple(  # type: ignore[return-value]
            session.execute(select(func.count()).select_from(model)).scalar_one()
            for model in (RevenueDay, RevenueDayService, RevenueDayServiceHour)
        )
