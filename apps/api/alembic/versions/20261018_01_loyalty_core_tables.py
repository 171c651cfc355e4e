"""Loyalty core tables: businesses, prizes, stamps, coupons.

Revision ID: 20261018_01
Revises: 
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> sa.types.TypeEngine:
    return sa.dialects.postgresql.UUID(as_uuid=True)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "businesses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "prizes",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "business_id",
            _uuid(),
            sa.ForeignKey("businesses.id", ondelete="CASCADE", name="fk_prizes_business_id_businesses"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points_required", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("points_required > 0", name="ck_prizes_points_required_positive"),
    )
    op.create_index("ix_prizes_business_id", "prizes", ["business_id"])

    op.create_table(
        "stamps",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "business_id",
            _uuid(),
            sa.ForeignKey("businesses.id", ondelete="CASCADE", name="fk_stamps_business_id_businesses"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_stamps_business_user", "stamps", ["business_id", "user_id"])
    op.create_index("ix_stamps_business_created", "stamps", ["business_id", "created_at"])

    op.create_table(
        "coupons",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "business_id",
            _uuid(),
            sa.ForeignKey("businesses.id", ondelete="CASCADE", name="fk_coupons_business_id_businesses"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "prize_id",
            _uuid(),
            sa.ForeignKey("prizes.id", ondelete="RESTRICT", name="fk_coupons_prize_id_prizes"),
            nullable=False,
        ),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("is_redeemed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("code", name="uq_coupons_code"),
    )
    op.create_index("ix_coupons_business_user", "coupons", ["business_id", "user_id"])


def downgrade() -> None:
    op.drop_index("ix_coupons_business_user", table_name="coupons")
    op.drop_table("coupons")
    op.drop_index("ix_stamps_business_created", table_name="stamps")
    op.drop_index("ix_stamps_business_user", table_name="stamps")
    op.drop_table("stamps")
    op.drop_index("ix_prizes_business_id", table_name="prizes")
    op.drop_table("prizes")
    op.drop_table("businesses")
