"""create crypto_assessments

Revision ID: 5e1c7a9d2b40
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5e1c7a9d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "crypto_assessments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("crypto_symbol", sa.String(32), nullable=False),
        sa.Column("investment_amount", sa.Float, nullable=False),
        sa.Column("risk_tolerance", sa.String(16), nullable=False),
        sa.Column("time_horizon", sa.String(16), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "assessment_data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column("status", sa.String(16), nullable=False, server_default="generating"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_crypto_assessments_user_status",
        "crypto_assessments",
        ["user_id", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_crypto_assessments_user_status", table_name="crypto_assessments")
    op.drop_table("crypto_assessments")
