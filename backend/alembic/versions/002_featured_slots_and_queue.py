"""featured_slots + featured_queue (one waiting entry per vendor+region)."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "featured_slots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("business_profile_id", sa.String(64), nullable=False),
        sa.Column("region_id", sa.Integer(), sa.ForeignKey("regions.id"), nullable=False),
        sa.Column("region_label", sa.String(128), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="scheduled"),
        sa.Column("payment_reference", sa.String(128), nullable=True),
        sa.Column("charged_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'active', 'expired', 'cancelled')", name="ck_featured_slots_status"
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_featured_slots_window"),
    )
    op.create_index("ix_featured_slots_vendor_id", "featured_slots", ["vendor_id"])
    op.create_index("ix_featured_slots_region_status_end", "featured_slots", ["region_id", "status", "end_time"])

    op.create_table(
        "featured_queue",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("business_profile_id", sa.String(64), nullable=False),
        sa.Column("region_id", sa.Integer(), sa.ForeignKey("regions.id"), nullable=False),
        sa.Column("region_label", sa.String(128), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="waiting"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("vendor_id", "region_id", name="uq_featured_queue_vendor_region"),
    )
    op.create_index("ix_featured_queue_region_id", "featured_queue", ["region_id"])


def downgrade() -> None:
    op.drop_index("ix_featured_queue_region_id", table_name="featured_queue")
    op.drop_table("featured_queue")
    op.drop_index("ix_featured_slots_region_status_end", table_name="featured_slots")
    op.drop_index("ix_featured_slots_vendor_id", table_name="featured_slots")
    op.drop_table("featured_slots")
