from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

# ---------------------------
# Reference: branches
# ---------------------------


class Branch(Base):
    """An organizational unit (restaurant location) of one tenant.

    ``code`` is the business code used in import files; lookups upper-case it.
    """

    __tablename__ = "branches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_branches_tenant_active", "tenant_id", "is_active"),)


# ---------------------------
# Reference: flow categories (two levels)
# ---------------------------


class FlowCategory(Base):
    __tablename__ = "flow_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # Categories are linked to a branch; NULL means shared across branches.
    branch_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("branches.id"), nullable=True
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_flow_categories_tenant_active", "tenant_id", "is_active"),)


class FlowSubCategory(Base):
    __tablename__ = "flow_subcategories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("flow_categories.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_flow_subcategories_tenant_active", "tenant_id", "is_active"),)


# ---------------------------
# Reference: service types (time windows)
# ---------------------------


class ServiceType(Base):
    """A named time window of a branch (breakfast, lunch, dinner, late night).

    ``window_end < window_start`` denotes a window spanning midnight. Both
    bounds are optional in the admin screens; a service type without both
    bounds never matches an imported line.
    """

    __tablename__ = "service_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    branch_id: Mapped[str] = mapped_column(String(36), ForeignKey("branches.id"), nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    window_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    window_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    subcategory_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("flow_subcategories.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_service_types_tenant_active", "tenant_id", "is_active"),
        Index("ix_service_types_branch_id", "branch_id"),
    )


__all__ = [
    "Branch",
    "FlowCategory",
    "FlowSubCategory",
    "ServiceType",
]
