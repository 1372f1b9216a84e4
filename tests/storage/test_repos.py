"""Tests for the storage repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from chain_volume_ingestor.storage.database import DatabaseManager
from chain_volume_ingestor.storage.models import TokenPriceModel, WalletModel
from chain_volume_ingestor.storage.repos import (
    BlockchainRepository,
    TokenPriceRepository,
    TransactionDTO,
    TransactionRepository,
    WalletRepository,
)

pytest.importorskip("aiosqlite", exc_type=ImportError)

HOUR = datetime(2025, 3, 10, 12, tzinfo=UTC)


@pytest.fixture
async def async_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


def make_dto(tx_hash: str, blockchain_id: int, **overrides) -> TransactionDTO:
    values = {
        "blockchain_id": blockchain_id,
        "tx_hash": tx_hash,
        "timestamp": HOUR,
        "from_address": "Lfrom",
        "to_address": "Lto",
        "direction": "incoming",
        "token_symbol": "ltc",
        "amount": Decimal("1.5"),
        "gas_fee": Decimal("0.0001"),
        "tx_type": "transfer",
        "is_suspicious": False,
        "usdt_volume": Decimal("150"),
        "btc_volume": Decimal("0.003"),
    }
    values.update(overrides)
    return TransactionDTO(**values)


# ============================================================================
# Blockchains and wallets
# ============================================================================


class TestBlockchainAndWallets:
    """Tests for BlockchainRepository and WalletRepository."""

    @pytest.mark.asyncio
    async def test_get_id_by_symbol(self, async_session, blockchain_id) -> None:
        repo = BlockchainRepository(async_session)

        assert await repo.get_id_by_symbol("ltc") == blockchain_id
        assert await repo.get_id_by_symbol("doge") is None

    @pytest.mark.asyncio
    async def test_list_wallets_in_id_order(self, async_session, blockchain_id) -> None:
        async_session.add_all(
            [
                WalletModel(address="Lfirst", blockchain_id=blockchain_id),
                WalletModel(address="Lsecond", blockchain_id=blockchain_id),
            ]
        )
        await async_session.flush()

        wallets = await WalletRepository(async_session).list_by_blockchain(blockchain_id)

        assert [w.address for w in wallets] == ["Lfirst", "Lsecond"]
        assert all(w.blockchain_id == blockchain_id for w in wallets)
        assert await WalletRepository(async_session).list_by_blockchain(blockchain_id + 1) == []


# ============================================================================
# Token prices
# ============================================================================


class TestTokenPriceRepository:
    """Tests for TokenPriceRepository."""

    @pytest.fixture
    async def seeded(self, async_session) -> TokenPriceRepository:
        for offset, usdt in ((-3, "80"), (0, "90"), (2, "95")):
            async_session.add(
                TokenPriceModel(
                    token_symbol="ltc",
                    timestamp=HOUR + timedelta(hours=offset),
                    price_usdt=Decimal(usdt),
                    price_btc=Decimal("0.001"),
                )
            )
        await async_session.flush()
        return TokenPriceRepository(async_session)

    @pytest.mark.asyncio
    async def test_get_exact(self, seeded) -> None:
        price = await seeded.get_exact("ltc", HOUR)

        assert price is not None
        assert price.price_usdt == Decimal("90")
        assert await seeded.get_exact("ltc", HOUR + timedelta(hours=1)) is None

    @pytest.mark.asyncio
    async def test_get_latest_at_or_before(self, seeded) -> None:
        price = await seeded.get_latest_at_or_before("ltc", HOUR + timedelta(hours=1))

        assert price is not None
        assert price.price_usdt == Decimal("90")
        assert await seeded.get_latest_at_or_before("ltc", HOUR - timedelta(hours=4)) is None

    @pytest.mark.asyncio
    async def test_get_latest(self, seeded) -> None:
        price = await seeded.get_latest("ltc")

        assert price is not None
        assert price.price_usdt == Decimal("95")
        assert await seeded.get_latest("btc") is None

    @pytest.mark.asyncio
    async def test_coverage(self, seeded) -> None:
        coverage = await seeded.coverage("ltc")

        assert coverage.total == 3
        assert coverage.first_price is not None
        assert coverage.last_price is not None
        assert coverage.first_price < coverage.last_price

    @pytest.mark.asyncio
    async def test_coverage_empty(self, async_session) -> None:
        coverage = await TokenPriceRepository(async_session).coverage("ltc")

        assert coverage.total == 0
        assert coverage.first_price is None


# ============================================================================
# Transactions
# ============================================================================


class TestTransactionRepository:
    """Tests for TransactionRepository."""

    @pytest.mark.asyncio
    async def test_insert_ignore_is_idempotent(self, async_session, blockchain_id) -> None:
        repo = TransactionRepository(async_session)

        assert await repo.insert_ignore(make_dto("h1", blockchain_id)) is True
        assert await repo.insert_ignore(make_dto("h1", blockchain_id, amount=Decimal("99"))) is False
        assert await repo.count() == 1

        # First write wins.
        stored = await repo.get_by_hash("h1")
        assert stored is not None
        assert stored.amount == Decimal("1.5")
        assert stored.created_at is not None

    @pytest.mark.asyncio
    async def test_get_by_hash_missing(self, async_session) -> None:
        assert await TransactionRepository(async_session).get_by_hash("nope") is None


# ============================================================================
# Database manager
# ============================================================================


class TestDatabaseManager:
    """Tests for DatabaseManager."""

    @pytest.mark.asyncio
    async def test_check_connection_and_schema(self, tmp_path) -> None:
        manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'manager.db'}")
        try:
            await manager.check_connection()
            await manager.init_schema_async()
            async with manager.get_async_session() as session:
                assert await TransactionRepository(session).count() == 0
        finally:
            await manager.dispose_async()

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_error(self, tmp_path) -> None:
        manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'manager.db'}")
        try:
            await manager.init_schema_async()
            with pytest.raises(RuntimeError):
                async with manager.get_async_session() as session:
                    await TransactionRepository(session).insert_ignore(make_dto("h1", 1))
                    raise RuntimeError("boom")
            async with manager.get_async_session() as session:
                assert await TransactionRepository(session).count() == 0
        finally:
            await manager.dispose_async()
