"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chain_volume_ingestor.explorer.models import RawTransaction
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.storage.database import (
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from chain_volume_ingestor.storage.models import BlockchainModel

WALLET = "LTCwallet1111111111111111111111111"
OTHER = "LTCother22222222222222222222222222"


@pytest.fixture
def wallet_address() -> str:
    """Tracked wallet address used across tests."""
    return WALLET


@pytest.fixture
def other_address() -> str:
    """Counterparty address used across tests."""
    return OTHER


@pytest.fixture
def march_window() -> DateWindow:
    """Ingestion window covering March 2025."""
    return DateWindow.from_dates(date(2025, 3, 1), date(2025, 3, 31))


@pytest.fixture
def in_window_ts() -> int:
    """A unix timestamp inside the March 2025 window (2025-03-10 12:30 UTC)."""
    return int(datetime(2025, 3, 10, 12, 30, tzinfo=UTC).timestamp())


@pytest.fixture
def tx_data(wallet_address: str, other_address: str, in_window_ts: int) -> Callable[..., dict[str, Any]]:
    """Build explorer-shaped transaction payloads.

    By default the wallet receives 1 coin from the counterparty.
    """

    def build(
        txid: str | None = "tx1",
        *,
        block_time: int | None = None,
        vin: list[dict[str, Any]] | None = None,
        vout: list[dict[str, Any]] | None = None,
        fees: str = "10000",
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "blockTime": in_window_ts if block_time is None else block_time,
            "vin": vin if vin is not None else [{"addresses": [other_address], "value": "150000000"}],
            "vout": vout if vout is not None else [{"addresses": [wallet_address], "value": "100000000"}],
            "fees": fees,
        }
        if txid is not None:
            data["txid"] = txid
        return data

    return build


@pytest.fixture
def make_tx(tx_data: Callable[..., dict[str, Any]]) -> Callable[..., RawTransaction]:
    """Build parsed RawTransaction objects."""

    def build(*args: Any, **kwargs: Any) -> RawTransaction:
        return RawTransaction.from_dict(tx_data(*args, **kwargs))

    return build


@pytest.fixture
async def async_engine(tmp_path):
    # File-backed so separate sessions see each other's commits.
    engine = create_async_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'ingest.db'}")
    await init_async_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return create_async_session_factory(async_engine)


@pytest.fixture
async def blockchain_id(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Seed the ``ltc`` blockchain row and return its id."""
    async with session_factory() as session, session.begin():
        model = BlockchainModel(symbol="ltc", name="Litecoin")
        session.add(model)
        await session.flush()
        return model.id
