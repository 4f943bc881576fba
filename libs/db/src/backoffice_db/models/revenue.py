from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Time,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, SurrogateId

# Three nested levels of imported revenue. Each level is unique on its natural
# key; the import upserts against exactly those constraints.

# ---------------------------
# Level 1: revenue per (branch, day, category)
# ---------------------------


class RevenueDay(Base):
    __tablename__ = "revenue_days"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    branch_id: Mapped[str] = mapped_column(String(36), ForeignKey("branches.id"), nullable=False)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("flow_categories.id"), nullable=False
    )
    amount_excl_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    amount_incl_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "branch_id", "sale_date", "category_id", name="uq_revenue_days_branch_date_category"
        ),
    )


# ---------------------------
# Level 2: revenue per (level 1, service type)
# ---------------------------


class RevenueDayService(Base):
    __tablename__ = "revenue_day_services"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    revenue_day_id: Mapped[int] = mapped_column(
        SurrogateId, ForeignKey("revenue_days.id", ondelete="CASCADE"), nullable=False
    )
    service_type_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("service_types.id"), nullable=False
    )
    amount_excl_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    amount_incl_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "revenue_day_id", "service_type_id", name="uq_revenue_day_services_day_service"
        ),
    )


# ---------------------------
# Level 3: revenue per (level 2, time, document)
# ---------------------------


class RevenueDayServiceHour(Base):
    __tablename__ = "revenue_day_service_hours"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    revenue_day_service_id: Mapped[int] = mapped_column(
        SurrogateId, ForeignKey("revenue_day_services.id", ondelete="CASCADE"), nullable=False
    )
    sale_time: Mapped[time] = mapped_column(Time, nullable=False)
    # Empty string when the source line carries no document; part of the
    # unique key, so it must never be NULL.
    document: Mapped[str] = mapped_column(String, nullable=False, server_default=text("''"))
    unit_price_excl_tax: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    unit_price_incl_tax: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    amount_excl_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    amount_incl_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "revenue_day_service_id",
            "sale_time",
            "document",
            name="uq_revenue_day_service_hours_service_time_document",
        ),
    )


__all__ = [
    "RevenueDay",
    "RevenueDayService",
    "RevenueDayServiceHour",
]
