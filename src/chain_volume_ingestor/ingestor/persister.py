"""Idempotent, batched persistence of classified transactions.

Transactions are written in fixed-size batches. Each batch runs in a single
database transaction and each row insert runs inside its own SAVEPOINT, so
a bad row is skipped without rolling back the rest of its batch. Inserts are
keyed on the transaction hash: re-ingesting a stored hash is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chain_volume_ingestor.detector.classifier import classify
from chain_volume_ingestor.exceptions import ValidationError
from chain_volume_ingestor.explorer.models import RawTransaction
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.pricing.resolver import PriceResolver
from chain_volume_ingestor.storage.repos import TransactionDTO, TransactionRepository

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_BATCH_SIZE = 50
DEFAULT_BATCH_DELAY_SECONDS = 0.5

UNKNOWN_ADDRESS = "unknown"
TX_TYPE_TRANSFER = "transfer"


@dataclass
class BatchResult:
    """Counters for one persisted batch."""

    saved: int = 0
    duplicates: int = 0
    skipped: int = 0


class BatchPersister:
    """Prices, classifies and stores transactions for one wallet at a time.

    Example:
        ```python
        persister = BatchPersister(db.session_factory, resolver, window, symbol="ltc")
        saved = await persister.persist(transactions, wallet_address=addr, blockchain_id=1)
        ```
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        price_resolver: PriceResolver,
        window: DateWindow,
        *,
        symbol: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the batch persister.

        Args:
            session_factory: Async session factory; one session per batch.
            price_resolver: Resolver for point-in-time prices.
            window: Ingestion window; rows outside it are skipped.
            symbol: Token symbol written to each row.
            batch_size: Transactions per database transaction.
            batch_delay_seconds: Pause between consecutive batches.
            sleep: Awaitable sleep function (used by tests).
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self._session_factory = session_factory
        self._price_resolver = price_resolver
        self._window = window
        self._symbol = symbol
        self._batch_size = batch_size
        self._batch_delay = batch_delay_seconds
        self._sleep = sleep

    async def persist(
        self,
        transactions: Sequence[RawTransaction],
        *,
        wallet_address: str,
        blockchain_id: int,
    ) -> int:
        """Persist ``transactions`` for ``wallet_address``.

        Returns:
            Number of rows actually inserted. Duplicates and skipped
            transactions are not counted.
        """
        total_saved = 0

        for index, start in enumerate(range(0, len(transactions), self._batch_size)):
            if index > 0 and self._batch_delay > 0:
                await self._sleep(self._batch_delay)

            batch = transactions[start : start + self._batch_size]
            result = await self._persist_batch(batch, wallet_address=wallet_address, blockchain_id=blockchain_id)
            total_saved += result.saved

            log = logger.warning if result.skipped else logger.info
            log(
                "Batch %d for %s: saved=%d duplicates=%d skipped=%d",
                index + 1,
                wallet_address,
                result.saved,
                result.duplicates,
                result.skipped,
            )

        return total_saved

    async def _persist_batch(
        self,
        batch: Sequence[RawTransaction],
        *,
        wallet_address: str,
        blockchain_id: int,
    ) -> BatchResult:
        result = BatchResult()

        # Prices come from their own sessions; resolve them before the batch
        # transaction opens.
        records: list[TransactionDTO] = []
        for tx in batch:
            try:
                records.append(await self._build_record(tx, wallet_address=wallet_address, blockchain_id=blockchain_id))
            except ValidationError as e:
                logger.warning("Skipping transaction for %s: %s", wallet_address, e)
                result.skipped += 1
            except Exception:
                logger.exception("Failed to process transaction %s", tx.txid)
                result.skipped += 1

        if not records:
            return result

        saved = 0
        duplicates = 0
        failed = 0
        try:
            async with self._session_factory() as session, session.begin():
                repo = TransactionRepository(session)
                for record in records:
                    try:
                        async with session.begin_nested():
                            inserted = await repo.insert_ignore(record)
                    except SQLAlchemyError as e:
                        logger.error("Failed to insert transaction %s: %s", record.tx_hash, e)
                        failed += 1
                        continue
                    if inserted:
                        saved += 1
                    else:
                        duplicates += 1
        except Exception:
            logger.exception("Batch for %s rolled back", wallet_address)
            result.skipped += len(records)
            return result

        result.saved = saved
        result.duplicates = duplicates
        result.skipped += failed
        return result

    async def _build_record(
        self,
        tx: RawTransaction,
        *,
        wallet_address: str,
        blockchain_id: int,
    ) -> TransactionDTO:
        if not tx.txid:
            raise ValidationError("Transaction ID is required")
        if tx.block_time is None or tx.timestamp is None:
            raise ValidationError(f"Transaction {tx.txid} has no timestamp")
        if not self._window.contains(tx.block_time):
            raise ValidationError(f"Transaction {tx.txid} is outside the ingestion window")

        classified = classify(tx, wallet_address)
        price = (await self._price_resolver.resolve(tx.block_time)).unwrap()

        logger.debug(
            "Transaction %s: %s %s %s",
            classified.txid,
            classified.direction.value,
            classified.amount,
            self._symbol,
        )

        return TransactionDTO(
            blockchain_id=blockchain_id,
            tx_hash=classified.txid,
            timestamp=tx.timestamp,
            from_address=tx.from_address or UNKNOWN_ADDRESS,
            to_address=tx.to_address or UNKNOWN_ADDRESS,
            direction=classified.direction.value,
            token_symbol=self._symbol,
            amount=classified.amount,
            gas_fee=classified.fee,
            tx_type=TX_TYPE_TRANSFER,
            is_suspicious=classified.suspicious,
            usdt_volume=classified.amount * price.price_usdt,
            btc_volume=classified.amount * price.price_btc,
        )
