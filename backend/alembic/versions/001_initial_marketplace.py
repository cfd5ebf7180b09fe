"""regions, vendors, products (the external entities this core reads and mutates)."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "regions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("state", sa.String(8), nullable=True),
        sa.Column("slot_cap", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_regions_name"),
    )
    op.create_table(
        "vendors",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("business_name", sa.String(256), nullable=True),
        sa.Column("contact_email", sa.String(256), nullable=True),
        sa.Column("tier", sa.String(16), nullable=False, server_default="basic"),
        sa.Column("vendor_status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("commission_rate", sa.Float(), nullable=True),
        sa.Column("dispute_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_dispute_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_delisted_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspension_reason", sa.String(256), nullable=True),
        sa.Column("payment_account_id", sa.String(64), nullable=True),
        sa.Column("payment_account_status", sa.String(16), nullable=True),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_account_id", name="uq_vendors_payment_account_id"),
    )
    op.create_index("ix_vendors_vendor_status", "vendors", ["vendor_status"])
    op.create_table(
        "products",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("title", sa.String(256), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_vendor_id", "products", ["vendor_id"])
    # FIFO unpublish scans published products oldest-first per vendor
    op.create_index("ix_products_vendor_published_created", "products", ["vendor_id", "published", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_products_vendor_published_created", table_name="products")
    op.drop_index("ix_products_vendor_id", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_vendors_vendor_status", table_name="vendors")
    op.drop_table("vendors")
    op.drop_table("regions")
