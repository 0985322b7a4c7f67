"""one rental per order item

Revision ID: a41f6c08e3d5
Revises: 7c3e1a9d2b40
Create Date: 2026-10-19 16:02:47.518930

"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = 'a41f6c08e3d5'
down_revision: Union[str, Sequence[str], None] = '7c3e1a9d2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


RENTAL_TABLES = ("rentals_ebook", "rentals_hardcopy", "rentals_audio")


def upgrade() -> None:
    """Upgrade schema."""

    # A paid order line can back one rental only
    for table in RENTAL_TABLES:
        with op.batch_alter_table(table) as batch_op:
            batch_op.create_unique_constraint(f"uq_{table}_order_item", ["order_item_id"])


def downgrade() -> None:
    """Downgrade schema."""
    for table in reversed(RENTAL_TABLES):
        with op.batch_alter_table(table) as batch_op:
            batch_op.drop_constraint(f"uq_{table}_order_item", type_="unique")
