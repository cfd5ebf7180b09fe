"""vendors: product_quota and can_sell_products, written from TIER_LIMITS when a vendor changes tier."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("vendors", sa.Column("product_quota", sa.Integer(), nullable=True))
    op.add_column("vendors", sa.Column("can_sell_products", sa.Boolean(), nullable=True))


def downgrade() -> None:
    op.drop_column("vendors", "can_sell_products")
    op.drop_column("vendors", "product_quota")
