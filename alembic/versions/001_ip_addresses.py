"""Initial schema with ip_addresses table

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ip_addresses",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("ipv4", sa.String(45), nullable=False),
        sa.Column("ipv6", sa.String(45), nullable=True),
        sa.Column("hostname", sa.String(255), nullable=True),
        sa.Column("priority", sa.Integer, nullable=False, server_default="100"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Lookups match either family, so both columns are unique and indexed
    op.create_unique_constraint("uq_ip_addresses_ipv4", "ip_addresses", ["ipv4"])
    op.create_unique_constraint("uq_ip_addresses_ipv6", "ip_addresses", ["ipv6"])


def downgrade() -> None:
    op.drop_constraint("uq_ip_addresses_ipv6", "ip_addresses")
    op.drop_constraint("uq_ip_addresses_ipv4", "ip_addresses")

    op.drop_table("ip_addresses")
