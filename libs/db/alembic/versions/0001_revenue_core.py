# ruff: noqa: I001
"""Reference tables and the three levels of imported revenue.

Revision ID: 0001_revenue_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_revenue_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _reference_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("label", sa.Text(), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
    ]


def upgrade() -> None:
    # Reference tables
    op.create_table("branches", *_reference_columns(), *_timestamps())
    op.create_index("ix_branches_tenant_active", "branches", ["tenant_id", "is_active"])

    op.create_table(
        "flow_categories",
        *_reference_columns(),
        sa.Column("branch_id", sa.String(36), sa.ForeignKey("branches.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_flow_categories_tenant_active", "flow_categories", ["tenant_id", "is_active"]
    )

    op.create_table(
        "flow_subcategories",
        *_reference_columns(),
        sa.Column(
            "category_id", sa.String(36), sa.ForeignKey("flow_categories.id"), nullable=False
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_flow_subcategories_tenant_active", "flow_subcategories", ["tenant_id", "is_active"]
    )

    op.create_table(
        "service_types",
        *_reference_columns(),
        sa.Column("branch_id", sa.String(36), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("window_start", sa.Time(), nullable=True),
        sa.Column("window_end", sa.Time(), nullable=True),
        sa.Column(
            "subcategory_id",
            sa.String(36),
            sa.ForeignKey("flow_subcategories.id"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_service_types_tenant_active", "service_types", ["tenant_id", "is_active"])
    op.create_index("ix_service_types_branch_id", "service_types", ["branch_id"])

    # Level 1
    op.create_table(
        "revenue_days",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("tenant_id", sa.String(36), nullable=False),
        sa.Column("branch_id", sa.String(36), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("sale_date", sa.Date(), nullable=False),
        sa.Column(
            "category_id", sa.String(36), sa.ForeignKey("flow_categories.id"), nullable=False
        ),
        sa.Column("amount_excl_tax", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_incl_tax", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "branch_id", "sale_date", "category_id", name="uq_revenue_days_branch_date_category"
        ),
    )

    # Level 2
    op.create_table(
        "revenue_day_services",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "revenue_day_id",
            sa.BigInteger(),
            sa.ForeignKey("revenue_days.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_type_id", sa.String(36), sa.ForeignKey("service_types.id"), nullable=False
        ),
        sa.Column("amount_excl_tax", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_incl_tax", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "revenue_day_id", "service_type_id", name="uq_revenue_day_services_day_service"
        ),
    )

    # Level 3
    op.create_table(
        "revenue_day_service_hours",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column(
            "revenue_day_service_id",
            sa.BigInteger(),
            sa.ForeignKey("revenue_day_services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sale_time", sa.Time(), nullable=False),
        sa.Column("document", sa.String(), nullable=False, server_default=sa.text("''")),
        sa.Column("unit_price_excl_tax", sa.Numeric(14, 2), nullable=True),
        sa.Column("unit_price_incl_tax", sa.Numeric(14, 2), nullable=True),
        sa.Column("amount_excl_tax", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_incl_tax", sa.Numeric(14, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "revenue_day_service_id",
            "sale_time",
            "document",
            name="uq_revenue_day_service_hours_service_time_document",
        ),
    )


def downgrade() -> None:
    op.drop_table("revenue_day_service_hours")
    op.drop_table("revenue_day_services")
    op.drop_table("revenue_days")
    op.drop_index("ix_service_types_branch_id", table_name="service_types")
    op.drop_index("ix_service_types_tenant_active", table_name="service_types")
    op.drop_table("service_types")
    op.drop_index("ix_flow_subcategories_tenant_active", table_name="flow_subcategories")
    op.drop_table("flow_subcategories")
    op.drop_index("ix_flow_categories_tenant_active", table_name="flow_categories")
    op.drop_table("flow_categories")
    op.drop_index("ix_branches_tenant_active", table_name="branches")
    op.drop_table("branches")
