from pathlib import Path

import pytest

from backoffice_db.client import session_scope
from backoffice_db.models.reference import FlowCategory, FlowSubCategory, ServiceType
from revenue_import.errors import ReferenceLoadError
from revenue_import.references import (
    build_reference_maps,
    fetch_categories,
    load_reference_maps,
)
from tests.helpers.db import (
    BRANCH_CDP,
    BRANCH_PQ,
    CATEGORY_FOOD,
    OTHER_TENANT_ID,
    SUBCATEGORIES,
    TENANT_ID,
    bootstrap_sqlite_db,
    service_type_id,
)


def test_load_reference_maps_indexes_active_rows(seeded_db: str):
    maps = load_reference_maps(TENANT_ID, database_url=seeded_db, concurrency=2)

    assert maps.tenant_id == TENANT_ID
    # Inactive and other-tenant branches are excluded; codes are upper-cased.
    assert dict(maps.entities_by_code) == {"CDP": BRANCH_CDP, "PQ": BRANCH_PQ}

    cdp = maps.service_types_by_entity[BRANCH_CDP]
    assert [st.code for st in cdp] == ["PDJ", "DEJ", "DIN", "NUIT"]
    assert cdp[0].window_start == "06:00:00"
    assert cdp[0].window_end == "10:59:00"
    assert cdp[3].window_end == "03:00:00"
    assert cdp[1].id == service_type_id(BRANCH_CDP, "DEJ")

    assert set(maps.subcategories_by_id) == set(SUBCATEGORIES)
    assert maps.subcategories_by_id["sub-lunch"].category_id == CATEGORY_FOOD
    assert set(maps.categories_by_id) == {CATEGORY_FOOD}


def test_reference_maps_are_read_only(seeded_db: str):
    maps = load_reference_maps(TENANT_ID, database_url=seeded_db)
    with pytest.raises(TypeError):
        maps.entities_by_code["NEW"] = "x"  # type: ignore[index]


def test_other_tenant_sees_only_its_rows(seeded_db: str):
    maps = load_reference_maps(OTHER_TENANT_ID, database_url=seeded_db)
    assert dict(maps.entities_by_code) == {"XYZ": "br-other"}
    assert dict(maps.service_types_by_entity) == {}


def test_service_type_keeps_sub_category_outside_the_sub_category_load(seeded_db: str):
    # A sub-category of another tenant, still active, linked from a service type.
    with session_scope(database_url=seeded_db) as session:
        session.add(
            FlowSubCategory(
                id="sub-shared",
                tenant_id=OTHER_TENANT_ID,
                category_id=CATEGORY_FOOD,
                code="SHARED",
            )
        )
        session.flush()
        session.get(ServiceType, service_type_id(BRANCH_PQ, "DIN")).subcategory_id = "sub-shared"

    maps = load_reference_maps(TENANT_ID, database_url=seeded_db)
    assert maps.subcategories_by_id["sub-shared"].code == "SHARED"
    assert maps.subcategories_by_id["sub-shared"].category_id == CATEGORY_FOOD


def test_load_requires_a_tenant():
    with pytest.raises(ReferenceLoadError):
        load_reference_maps("")


def test_load_failure_is_wrapped():
    # No DATABASE_URL configured at all.
    with pytest.raises(ReferenceLoadError) as ei:
        load_reference_maps(TENANT_ID)
    assert isinstance(ei.value.__cause__, RuntimeError)


def test_load_failure_on_missing_tables(tmp_path: Path):
    url = f"sqlite+pysqlite:///{tmp_path / 'empty.db'}"
    with pytest.raises(ReferenceLoadError):
        load_reference_maps(TENANT_ID, database_url=url)


def test_fetch_categories_ignores_active_flag(seeded_db: str):
    with session_scope(database_url=seeded_db) as session:
        session.add(
            FlowCategory(id="cat-archived", tenant_id=TENANT_ID, code="ARCHIVE", is_active=False)
        )

    found = fetch_categories(
        ["cat-archived", "cat-unknown", ""], tenant_id=TENANT_ID, database_url=seeded_db
    )
    assert list(found) == ["cat-archived"]
    assert found["cat-archived"].code == "ARCHIVE"
    assert fetch_categories([], database_url=seeded_db) == {}

    maps = load_reference_maps(TENANT_ID, database_url=seeded_db)
    assert "cat-archived" not in maps.categories_by_id


def test_build_reference_maps_skips_blank_branch_codes():
    from types import SimpleNamespace as Row

    maps = build_reference_maps(
        TENANT_ID,
        branches=[Row(id="b1", code="  ab "), Row(id="b2", code=""), Row(id="b3", code="AB")],
        service_types=[],
        subcategories=[],
        categories=[],
    )
    assert dict(maps.entities_by_code) == {"AB": "b1"}
    assert not maps.is_empty


def test_bootstrap_helper_creates_schema(tmp_path: Path):
    url = bootstrap_sqlite_db(tmp_path / "x.db")
    assert load_reference_maps(TENANT_ID, database_url=url).is_empty
