"""PowerDNS generic SQL backend schema

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "domains",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("master", sa.String(length=128), nullable=True),
        sa.Column("last_check", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("notified_serial", sa.BigInteger(), nullable=True),
        sa.Column("account", sa.String(length=40), nullable=True),
    )

    op.create_table(
        "records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "domain_id",
            sa.Integer(),
            sa.ForeignKey("domains.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("content", sa.String(length=1024), nullable=False),
        sa.Column("ttl", sa.Integer(), nullable=False),
        sa.Column("prio", sa.Integer(), nullable=True),
        sa.Column("disabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("ordername", sa.String(length=255), nullable=True),
        sa.Column("auth", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.UniqueConstraint("domain_id", "name", "type", "content", name="uq_records_natural_key"),
    )
    op.create_index("ix_records_name_type", "records", ["name", "type"])


def downgrade() -> None:
    op.drop_index("ix_records_name_type", table_name="records")
    op.drop_table("records")
    op.drop_table("domains")
