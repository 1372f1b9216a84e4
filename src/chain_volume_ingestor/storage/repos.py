"""Repository pattern implementations for data access.

This module provides data access abstractions for blockchains, tracked
wallets, hourly token prices and ingested transactions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from chain_volume_ingestor.storage.models import (
    BlockchainModel,
    TokenPriceModel,
    TransactionModel,
    WalletModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class WalletDTO:
    """Data transfer object for tracked wallets."""

    id: int
    address: str
    blockchain_id: int

    @classmethod
    def from_model(cls, model: WalletModel) -> WalletDTO:
        return cls(id=model.id, address=model.address, blockchain_id=model.blockchain_id)


@dataclass
class TokenPriceDTO:
    """Data transfer object for an hourly price point."""

    token_symbol: str
    timestamp: datetime
    price_usdt: Decimal
    price_btc: Decimal

    @classmethod
    def from_model(cls, model: TokenPriceModel) -> TokenPriceDTO:
        return cls(
            token_symbol=model.token_symbol,
            timestamp=model.timestamp,
            price_usdt=model.price_usdt,
            price_btc=model.price_btc,
        )


@dataclass
class PriceCoverageDTO:
    """First/last recorded price timestamps and row count for a symbol."""

    first_price: datetime | None
    last_price: datetime | None
    total: int


@dataclass
class TransactionDTO:
    """Data transfer object for a persisted transaction record."""

    blockchain_id: int
    tx_hash: str
    timestamp: datetime
    from_address: str
    to_address: str
    direction: str
    token_symbol: str
    amount: Decimal
    gas_fee: Decimal
    tx_type: str
    is_suspicious: bool
    usdt_volume: Decimal
    btc_volume: Decimal
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TransactionModel) -> TransactionDTO:
        return cls(
            blockchain_id=model.blockchain_id,
            tx_hash=model.tx_hash,
            timestamp=model.timestamp,
            from_address=model.from_address,
            to_address=model.to_address,
            direction=model.direction,
            token_symbol=model.token_symbol,
            amount=model.amount,
            gas_fee=model.gas_fee,
            tx_type=model.tx_type,
            is_suspicious=model.is_suspicious,
            usdt_volume=model.usdt_volume,
            btc_volume=model.btc_volume,
            created_at=model.created_at,
        )


class BlockchainRepository:
    """Repository for the blockchains table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_id_by_symbol(self, symbol: str) -> int | None:
        result = await self.session.execute(
            select(BlockchainModel.id).where(BlockchainModel.symbol == symbol)
        )
        return result.scalar_one_or_none()


class WalletRepository:
    """Repository for tracked wallets."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_by_blockchain(self, blockchain_id: int) -> list[WalletDTO]:
        result = await self.session.execute(
            select(WalletModel)
            .where(WalletModel.blockchain_id == blockchain_id)
            .order_by(WalletModel.id.asc())
        )
        return [WalletDTO.from_model(m) for m in result.scalars().all()]


class TokenPriceRepository:
    """Read access to hourly token prices."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_exact(self, symbol: str, hour: datetime) -> TokenPriceDTO | None:
        result = await self.session.execute(
            select(TokenPriceModel).where(
                TokenPriceModel.token_symbol == symbol,
                TokenPriceModel.timestamp == hour,
            )
        )
        model = result.scalars().first()
        return TokenPriceDTO.from_model(model) if model else None

    async def get_latest_at_or_before(self, symbol: str, hour: datetime) -> TokenPriceDTO | None:
        result = await self.session.execute(
            select(TokenPriceModel)
            .where(
                TokenPriceModel.token_symbol == symbol,
                TokenPriceModel.timestamp <= hour,
            )
            .order_by(TokenPriceModel.timestamp.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return TokenPriceDTO.from_model(model) if model else None

    async def get_latest(self, symbol: str) -> TokenPriceDTO | None:
        result = await self.session.execute(
            select(TokenPriceModel)
            .where(TokenPriceModel.token_symbol == symbol)
            .order_by(TokenPriceModel.timestamp.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return TokenPriceDTO.from_model(model) if model else None

    async def coverage(self, symbol: str) -> PriceCoverageDTO:
        result = await self.session.execute(
            select(
                sa.func.min(TokenPriceModel.timestamp),
                sa.func.max(TokenPriceModel.timestamp),
                sa.func.count(),
            ).where(TokenPriceModel.token_symbol == symbol)
        )
        first_price, last_price, total = result.one()
        return PriceCoverageDTO(first_price=first_price, last_price=last_price, total=int(total or 0))


class TransactionRepository:
    """Repository for ingested transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_hash(self, tx_hash: str) -> TransactionDTO | None:
        result = await self.session.execute(select(TransactionModel).where(TransactionModel.tx_hash == tx_hash))
        model = result.scalar_one_or_none()
        return TransactionDTO.from_model(model) if model else None

    async def count(self) -> int:
        result = await self.session.execute(select(sa.func.count()).select_from(TransactionModel))
        return int(result.scalar_one())

    async def insert_ignore(self, dto: TransactionDTO) -> bool:
        """Insert a transaction unless its hash already exists.

        Returns:
            True if a row was inserted, False if the hash was already stored
            (first write wins).
        """
        values = {
            "blockchain_id": dto.blockchain_id,
            "tx_hash": dto.tx_hash,
            "timestamp": dto.timestamp,
            "from_address": dto.from_address,
            "to_address": dto.to_address,
            "direction": dto.direction,
            "token_symbol": dto.token_symbol,
            "amount": dto.amount,
            "gas_fee": dto.gas_fee,
            "tx_type": dto.tx_type,
            "is_suspicious": dto.is_suspicious,
            "usdt_volume": dto.usdt_volume,
            "btc_volume": dto.btc_volume,
            "created_at": dto.created_at or datetime.now(UTC),
        }
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(TransactionModel).values(**values).on_conflict_do_nothing(index_elements=["tx_hash"])
        else:
            stmt = sqlite_insert(TransactionModel).values(**values).on_conflict_do_nothing(index_elements=["tx_hash"])
        result = await self.session.execute(stmt)
        inserted = bool(result.rowcount)
        if not inserted:
            logger.debug("Transaction %s already stored; skipping", dto.tx_hash)
        return inserted
