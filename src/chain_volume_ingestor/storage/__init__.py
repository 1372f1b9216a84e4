"""Storage layer - Database schemas and repositories."""

from chain_volume_ingestor.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from chain_volume_ingestor.storage.models import (
    Base,
    BlockchainModel,
    TokenPriceModel,
    TransactionModel,
    WalletModel,
)
from chain_volume_ingestor.storage.repos import (
    BlockchainRepository,
    PriceCoverageDTO,
    TokenPriceDTO,
    TokenPriceRepository,
    TransactionDTO,
    TransactionRepository,
    WalletDTO,
    WalletRepository,
)

__all__ = [
    "Base",
    "BlockchainModel",
    "BlockchainRepository",
    "DatabaseManager",
    "PriceCoverageDTO",
    "TokenPriceDTO",
    "TokenPriceModel",
    "TokenPriceRepository",
    "TransactionDTO",
    "TransactionModel",
    "TransactionRepository",
    "WalletDTO",
    "WalletModel",
    "WalletRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
