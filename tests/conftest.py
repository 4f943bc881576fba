# ruff: noqa: E402, I001
"""Pytest configuration for test isolation.

The import reads ``DATABASE_URL`` and ``REVENUE_IMPORT_TENANT_ID`` from the
environment and keeps one shared engine per process. Tests bootstrap their own
SQLite file, so both the environment and the cached engine are reset around
every test.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make `packages/` and `libs/db/src` importable without an install, ahead of
# the repo root so local packages resolve first.
_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

from backoffice_db.client import reset_engine


@pytest.fixture(autouse=True)
def _isolate_database(monkeypatch: pytest.MonkeyPatch):
    """Forget any engine and database settings left by a previous test."""

    for name in (
        "DATABASE_URL",
        "REVENUE_IMPORT_TENANT_ID",
        "REVENUE_IMPORT_REFERENCE_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_engine()
    yield
    reset_engine()


@pytest.fixture()
def seeded_db(tmp_path: Path) -> str:
    """SQLite database with the schema and the reference data of ``TENANT_ID``."""

    from tests.helpers.db import bootstrap_sqlite_db, seed_reference_data

    url = bootstrap_sqlite_db(tmp_path / "revenue.db")
    seed_reference_data(database_url=url)
    return url
