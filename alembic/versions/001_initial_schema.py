"""initial schema: accounts, predictions, trades

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from paper_node.db.tables import ExactDecimal

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("wallet_address", sa.String(), nullable=False),
        sa.Column("shm_tokens", ExactDecimal(), nullable=False),
        sa.Column("prediction_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_predictions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("correct_predictions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_accounts_wallet_address", "accounts", ["wallet_address"], unique=True)
    op.create_index("ix_accounts_created_at", "accounts", ["created_at"])

    op.create_table(
        "predictions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("account_id", sa.String(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("asset", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("entry_price", ExactDecimal(), nullable=False),
        sa.Column("target_price", ExactDecimal(), nullable=True),
        sa.Column("timeframe", sa.String(), nullable=False),
        sa.Column("reward_tokens", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("request_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("resolvable_at", sa.DateTime(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("account_id", "request_id", name="uq_predictions_account_request"),
    )
    op.create_index("ix_predictions_account_id", "predictions", ["account_id"])
    op.create_index("ix_predictions_status", "predictions", ["status"])
    op.create_index("ix_predictions_created_at", "predictions", ["created_at"])
    op.create_index("ix_predictions_resolvable_at", "predictions", ["resolvable_at"])
    op.create_index("idx_predictions_pending", "predictions", ["status", "resolvable_at"])

    op.create_table(
        "trades",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("account_id", sa.String(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("asset", sa.String(), nullable=False),
        sa.Column("side", sa.String(), nullable=False),
        sa.Column("amount", ExactDecimal(), nullable=False),
        sa.Column("price", ExactDecimal(), nullable=False),
        sa.Column("total_shm", ExactDecimal(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("tx_hash", sa.String(), nullable=True),
        sa.Column("request_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("account_id", "request_id", name="uq_trades_account_request"),
    )
    op.create_index("ix_trades_account_id", "trades", ["account_id"])
    op.create_index("ix_trades_status", "trades", ["status"])
    op.create_index("ix_trades_created_at", "trades", ["created_at"])


def downgrade() -> None:
    op.drop_table("trades")
    op.drop_table("predictions")
    op.drop_table("accounts")
