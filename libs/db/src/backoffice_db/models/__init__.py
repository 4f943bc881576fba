"""Shared SQLAlchemy models registry for the back-office database.

Reference tables (branches, service types, flow categories) and the three
levels of imported revenue used by ``revenue_import``.
"""

from .base import Base
from .reference import Branch, FlowCategory, FlowSubCategory, ServiceType
from .revenue import RevenueDay, RevenueDayService, RevenueDayServiceHour

__all__ = [
    "Base",
    "Branch",
    "FlowCategory",
    "FlowSubCategory",
    "ServiceType",
    "RevenueDay",
    "RevenueDayService",
    "RevenueDayServiceHour",
]
