"""Initial schema for blockchains, wallets, token prices and transactions.

Revision ID: 001_initial
Revises:
Create Date: 2025-03-01 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Blockchains table
    op.create_table(
        "blockchains",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("symbol", sa.String(16), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("symbol"),
    )

    # Tracked wallets table
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("address", sa.String(128), nullable=False),
        sa.Column("blockchain_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["blockchain_id"], ["blockchains.id"]),
        sa.UniqueConstraint("blockchain_id", "address", name="uq_wallets_blockchain_address"),
    )
    op.create_index("idx_wallets_blockchain", "wallets", ["blockchain_id"])

    # Hourly token prices table
    op.create_table(
        "token_prices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contract_address", sa.String(128), nullable=True),
        sa.Column("token_symbol", sa.String(16), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price_usdt", sa.Numeric(24, 8), nullable=False),
        sa.Column("price_btc", sa.Numeric(24, 12), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_symbol", "timestamp", name="uq_token_prices_symbol_ts"),
    )
    op.create_index("idx_token_prices_symbol_ts", "token_prices", ["token_symbol", "timestamp"])

    # Ingested transactions table
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("blockchain_id", sa.Integer(), nullable=False),
        sa.Column("tx_hash", sa.String(128), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("from_address", sa.String(128), nullable=False),
        sa.Column("to_address", sa.String(128), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("token_symbol", sa.String(16), nullable=False),
        sa.Column("amount", sa.Numeric(24, 8), nullable=False),
        sa.Column("gas_fee", sa.Numeric(24, 8), nullable=False),
        sa.Column("tx_type", sa.String(20), nullable=False, server_default="transfer"),
        sa.Column("is_suspicious", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("usdt_volume", sa.Numeric(24, 8), nullable=False),
        sa.Column("btc_volume", sa.Numeric(24, 8), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["blockchain_id"], ["blockchains.id"]),
        sa.UniqueConstraint("tx_hash"),
    )
    op.create_index("idx_transactions_from_ts", "transactions", ["from_address", "timestamp"])
    op.create_index("idx_transactions_blockchain_ts", "transactions", ["blockchain_id", "timestamp"])


def downgrade() -> None:
    op.drop_index("idx_transactions_blockchain_ts", table_name="transactions")
    op.drop_index("idx_transactions_from_ts", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("idx_token_prices_symbol_ts", table_name="token_prices")
    op.drop_table("token_prices")
    op.drop_index("idx_wallets_blockchain", table_name="wallets")
    op.drop_table("wallets")
    op.drop_table("blockchains")
