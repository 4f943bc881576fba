"""backoffice_db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``backoffice_db.models.reference`` and
  ``backoffice_db.models.revenue`` (re-exported for convenience)
- Engine/session helpers in ``backoffice_db.client``
"""

from __future__ import annotations

from .models import (
    Base,
    Branch,
    FlowCategory,
    FlowSubCategory,
    RevenueDay,
    RevenueDayService,
    RevenueDayServiceHour,
    ServiceType,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Branch",
    "FlowCategory",
    "FlowSubCategory",
    "ServiceType",
    "RevenueDay",
    "RevenueDayService",
    "RevenueDayServiceHour",
]
