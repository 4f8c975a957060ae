"""add fraud alerts

Revision ID: 20261019_000002
Revises: 20261019_000001
Create Date: 2026-10-19 00:00:02.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000002"
down_revision: Union[str, None] = "20261019_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "fraud_alerts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("suspicious_ips", sa.JSON(), nullable=False),
        sa.Column("suspicious_users", sa.JSON(), nullable=False),
        sa.Column("reviewed", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_fraud_alerts_reviewed"), "fraud_alerts", ["reviewed"], unique=False)
    op.create_index(op.f("ix_fraud_alerts_created_at"), "fraud_alerts", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_fraud_alerts_created_at"), table_name="fraud_alerts")
    op.drop_index(op.f("ix_fraud_alerts_reviewed"), table_name="fraud_alerts")
    op.drop_table("fraud_alerts")
