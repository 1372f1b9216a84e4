"""SQLAlchemy models for persistent storage.

This module defines the database schema for blockchains, tracked wallets,
hourly token prices and ingested transactions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class BlockchainModel(Base):
    """Supported blockchains, looked up by symbol."""

    __tablename__ = "blockchains"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)


class WalletModel(Base):
    """Tracked wallets. Created externally; read-only to the ingestion run."""

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(128), nullable=False)
    blockchain_id: Mapped[int] = mapped_column(Integer, ForeignKey("blockchains.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("blockchain_id", "address", name="uq_wallets_blockchain_address"),
        Index("idx_wallets_blockchain", "blockchain_id"),
    )


class TokenPriceModel(Base):
    """Hourly USDT/BTC prices per token, loaded by the price backfill job."""

    __tablename__ = "token_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    token_symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price_usdt: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    price_btc: Mapped[Decimal] = mapped_column(Numeric(24, 12), nullable=False)

    __table_args__ = (
        UniqueConstraint("token_symbol", "timestamp", name="uq_token_prices_symbol_ts"),
        Index("idx_token_prices_symbol_ts", "token_symbol", "timestamp"),
    )


class TransactionModel(Base):
    """Ingested wallet transactions with point-in-time volumes.

    ``tx_hash`` is unique: re-ingestion is an insert-or-ignore no-op.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blockchain_id: Mapped[int] = mapped_column(Integer, ForeignKey("blockchains.id"), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    from_address: Mapped[str] = mapped_column(String(128), nullable=False)
    to_address: Mapped[str] = mapped_column(String(128), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    token_symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    gas_fee: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    tx_type: Mapped[str] = mapped_column(String(20), nullable=False, default="transfer")
    is_suspicious: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    usdt_volume: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    btc_volume: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_transactions_from_ts", "from_address", "timestamp"),
        Index("idx_transactions_blockchain_ts", "blockchain_id", "timestamp"),
    )
