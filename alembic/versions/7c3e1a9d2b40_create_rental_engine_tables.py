"""create rental engine tables

Revision ID: 7c3e1a9d2b40
Revises:
Create Date: 2026-10-19 12:40:11.204318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c3e1a9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ACTIVE_RENTAL = sa.text("state = 'ACTIVE'")


def _rental_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("content_id", sa.Integer(), sa.ForeignKey("content.id"), nullable=False),
        sa.Column("order_item_id", sa.Integer(), sa.ForeignKey("rental_order_item.id"), nullable=False),
        sa.Column("tier", sa.String(), nullable=False),
        sa.Column("fee", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("state", sa.String(), nullable=False),
        sa.Column("revoked_reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _rental_indexes(table):
    op.create_index(f"ix_{table}_buyer_id", table, ["buyer_id"])
    op.create_index(f"ix_{table}_content_id", table, ["content_id"])
    op.create_index(f"ix_{table}_state", table, ["state"])
    op.create_index(
        f"uq_{table}_one_active",
        table,
        ["buyer_id", "content_id"],
        unique=True,
        postgresql_where=ACTIVE_RENTAL,
        sqlite_where=ACTIVE_RENTAL,
    )


def upgrade():
    op.create_table(
        "content",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("author", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("has_digital", sa.Boolean(), nullable=False),
        sa.Column("has_hardcopy", sa.Boolean(), nullable=False),
        sa.Column("has_audio", sa.Boolean(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("digital_price", sa.Integer(), nullable=True),
        sa.Column("audio_price", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("inventory", sa.Integer(), nullable=False),
        sa.Column("digital_file_url", sa.String(), nullable=True),
        sa.Column("audio_file_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("inventory >= 0", name="ck_content_inventory_non_negative"),
    )

    op.create_table(
        "rental_order",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_rental_order_buyer_id", "rental_order", ["buyer_id"])

    op.create_table(
        "rental_order_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("rental_order.id"), nullable=False),
        sa.Column("content_id", sa.Integer(), sa.ForeignKey("content.id"), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("is_rental", sa.Boolean(), nullable=False),
    )

    # rentals
    op.create_table(
        "rentals_ebook",
        *_rental_columns(),
        sa.Column("access_token", sa.String(), nullable=False, unique=True),
        sa.Column("access_count", sa.Integer(), nullable=False),
        sa.Column("last_access_at", sa.DateTime(), nullable=True),
        sa.Column("watermark", sa.String(), nullable=True),
        sa.CheckConstraint("fee >= 0", name="ck_rentals_ebook_fee_non_negative"),
    )
    _rental_indexes("rentals_ebook")

    op.create_table(
        "rentals_hardcopy",
        *_rental_columns(),
        sa.Column("guarantee", sa.Integer(), nullable=False),
        sa.Column("initial_condition", sa.String(), nullable=False),
        sa.Column("return_condition", sa.String(), nullable=True),
        sa.Column("condition_notes", sa.String(), nullable=True),
        sa.Column("is_damaged", sa.Boolean(), nullable=False),
        sa.Column("damage_notes", sa.String(), nullable=True),
        sa.Column("refund_amount", sa.Integer(), nullable=True),
        sa.Column("damage_deduction", sa.Integer(), nullable=True),
        sa.Column("late_fee", sa.Integer(), nullable=True),
        sa.Column("returned", sa.Boolean(), nullable=False),
        sa.Column("returned_at", sa.DateTime(), nullable=True),
        sa.Column("shipping_address", sa.String(), nullable=False),
        sa.Column("tracking_number", sa.String(), nullable=True),
        sa.Column("return_tracking", sa.String(), nullable=True),
        sa.CheckConstraint("fee >= 0", name="ck_rentals_hardcopy_fee_non_negative"),
        sa.CheckConstraint("guarantee >= 0", name="ck_rentals_hardcopy_guarantee_non_negative"),
    )
    _rental_indexes("rentals_hardcopy")

    op.create_table(
        "rentals_audio",
        *_rental_columns(),
        sa.Column("total_play_seconds", sa.Integer(), nullable=False),
        sa.Column("play_count", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("last_played_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("fee >= 0", name="ck_rentals_audio_fee_non_negative"),
    )
    _rental_indexes("rentals_audio")

    # subscriptions
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column("max_concurrent", sa.Integer(), nullable=False),
        sa.Column("includes_ebooks", sa.Boolean(), nullable=False),
        sa.Column("includes_hardcopy", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("featured", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("max_concurrent > 0", name="ck_subscriptions_max_concurrent_positive"),
        sa.CheckConstraint("price >= 0", name="ck_subscriptions_price_non_negative"),
    )

    op.create_table(
        "subscription_content",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subscription_id", sa.Integer(), sa.ForeignKey("subscriptions.id"), nullable=False),
        sa.Column("content_id", sa.Integer(), sa.ForeignKey("content.id"), nullable=False),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("subscription_id", "content_id", name="uq_subscription_content"),
    )
    op.create_index("ix_subscription_content_subscription_id", "subscription_content", ["subscription_id"])
    op.create_index("ix_subscription_content_content_id", "subscription_content", ["content_id"])

    op.create_table(
        "user_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.Integer(), sa.ForeignKey("subscriptions.id"), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("auto_renew", sa.Boolean(), nullable=False),
        sa.Column("total_access", sa.Integer(), nullable=False),
        sa.Column("current_access", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("current_access >= 0", name="ck_user_subscriptions_current_non_negative"),
    )
    op.create_index("ix_user_subscriptions_buyer_id", "user_subscriptions", ["buyer_id"])
    op.create_index(
        "uq_user_subscriptions_one_active",
        "user_subscriptions",
        ["buyer_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    # terms
    op.create_table(
        "terms_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("version", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("effective_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_terms_versions_category", "terms_versions", ["category"])
    op.create_index(
        "uq_terms_versions_one_active",
        "terms_versions",
        ["category"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    op.create_table(
        "terms_acceptances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("terms_id", sa.Integer(), sa.ForeignKey("terms_versions.id"), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=False),
        sa.Column("confirmed_read", sa.Boolean(), nullable=False),
        sa.Column("confirmed_understood", sa.Boolean(), nullable=False),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("read_time_seconds", sa.Integer(), nullable=True),
        sa.Column("scroll_depth", sa.Integer(), nullable=True),
    )
    op.create_index("ix_terms_acceptances_buyer_id", "terms_acceptances", ["buyer_id"])
    op.create_index("ix_terms_acceptances_terms_id", "terms_acceptances", ["terms_id"])

    # audit log
    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("rental_id", sa.Integer(), nullable=True),
        sa.Column("delivery_mode", sa.String(), nullable=True),
        sa.Column("user_subscription_id", sa.Integer(), nullable=True),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("content_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("detail", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_rental", "audit_events", ["delivery_mode", "rental_id"])
    op.create_index("ix_audit_events_user_subscription_id", "audit_events", ["user_subscription_id"])
    op.create_index("ix_audit_events_buyer_id", "audit_events", ["buyer_id"])
    op.create_index("ix_audit_events_content_id", "audit_events", ["content_id"])
    op.create_index("ix_audit_events_kind", "audit_events", ["kind"])


def downgrade():
    op.drop_table("audit_events")
    op.drop_table("terms_acceptances")
    op.drop_table("terms_versions")
    op.drop_table("user_subscriptions")
    op.drop_table("subscription_content")
    op.drop_table("subscriptions")
    op.drop_table("rentals_audio")
    op.drop_table("rentals_hardcopy")
    op.drop_table("rentals_ebook")
    op.drop_table("rental_order_item")
    op.drop_table("rental_order")
    op.drop_table("content")
