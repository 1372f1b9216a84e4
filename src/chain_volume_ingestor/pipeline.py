"""Main pipeline orchestrator for the chain volume ingestor.

This module provides the IngestionPipeline class that wires together the
explorer client, block range resolution, transaction retrieval, pricing and
persistence, and drives one backfill run over every tracked wallet.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from chain_volume_ingestor.config import Settings, get_settings
from chain_volume_ingestor.exceptions import FatalError, RequestError
from chain_volume_ingestor.explorer.client import ExplorerClient
from chain_volume_ingestor.ingestor.block_locator import BlockRange, BlockTimeLocator
from chain_volume_ingestor.ingestor.cache import RunCache
from chain_volume_ingestor.ingestor.fetcher import TransactionFetcher
from chain_volume_ingestor.ingestor.persister import BatchPersister
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.outcome import Degraded, Fatal, Ok, RunOutcome
from chain_volume_ingestor.pricing.resolver import PriceResolver
from chain_volume_ingestor.storage.database import DatabaseManager
from chain_volume_ingestor.storage.repos import (
    BlockchainRepository,
    TokenPriceRepository,
    WalletDTO,
    WalletRepository,
)

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    RUNNING = "running"
    ERROR = "error"


class WalletStatus(str, Enum):
    """How a single wallet's ingestion ended."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class RunSummary:
    """Statistics for one ingestion run."""

    wallets_total: int = 0
    wallets_processed: int = 0
    wallets_failed: int = 0
    wallets_degraded: int = 0
    transactions_saved: int = 0
    block_range: BlockRange | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


@dataclass(frozen=True)
class _RunComponents:
    locator: BlockTimeLocator
    fetcher: TransactionFetcher
    persister: BatchPersister


class IngestionPipeline:
    """Backfills wallet transactions for the configured window.

    Pipeline flow:
        Connectivity check → Chain status → Block range → Wallets →
        (per wallet) Fetch → Classify + Price → Persist

    The pipeline owns a fresh ``RunCache`` per run. Explorer client and
    database manager are created from settings unless injected; injected
    collaborators are left open for the caller to close.

    Example:
        ```python
        from chain_volume_ingestor.config import get_settings
        from chain_volume_ingestor.pipeline import IngestionPipeline

        pipeline = IngestionPipeline(get_settings())
        outcome = await pipeline.run()
        print(outcome.unwrap().transactions_saved)
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        explorer_client: ExplorerClient | None = None,
        db_manager: DatabaseManager | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            explorer_client: Optional pre-built explorer client.
            db_manager: Optional pre-built database manager.
            sleep: Awaitable sleep used between persisted batches.
        """
        self._settings = settings or get_settings()
        self._explorer_client = explorer_client
        self._db_manager = db_manager
        self._owns_client = explorer_client is None
        self._owns_db = db_manager is None
        self._sleep = sleep

        self._state = PipelineState.STOPPED
        self._summary = RunSummary()
        self._cache: RunCache | None = None
        self._window = DateWindow.from_dates(
            self._settings.ingestion.start_date,
            self._settings.ingestion.end_date,
        )

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> RunSummary:
        """Statistics of the current (or last) run."""
        return self._summary

    @property
    def window(self) -> DateWindow:
        return self._window

    async def run(self) -> RunOutcome[RunSummary]:
        """Run one ingestion pass over every tracked wallet.

        Returns:
            ``Ok(summary)`` when everything succeeded, ``Degraded(summary,
            cause)`` when the block range or any wallet degraded or failed,
            and ``Fatal(cause)`` when the run could not proceed.

        Raises:
            RuntimeError: If the pipeline is already running.
        """
        if self._state == PipelineState.RUNNING:
            raise RuntimeError(f"Cannot run pipeline in state {self._state}")

        self._state = PipelineState.RUNNING
        self._summary = RunSummary(started_at=datetime.now(UTC))
        cache = RunCache()
        self._cache = cache
        logger.info(
            "Starting ingestion for %s from %s to %s",
            self._settings.blockchain.symbol,
            self._window.start.isoformat(),
            self._window.end.isoformat(),
        )

        try:
            causes = await self._run(cache)
        except FatalError as e:
            self._state = PipelineState.ERROR
            self._summary.finished_at = datetime.now(UTC)
            logger.error("Ingestion aborted: %s", e)
            return Fatal(e)
        except Exception as e:
            self._state = PipelineState.ERROR
            logger.error("Ingestion failed: %s", e)
            raise
        finally:
            await self._cleanup()

        self._summary.finished_at = datetime.now(UTC)
        self._state = PipelineState.STOPPED
        self._log_summary()

        if causes:
            return Degraded(self._summary, causes[0])
        return Ok(self._summary)

    async def _run(self, cache: RunCache) -> list[BaseException | str]:
        settings = self._settings
        causes: list[BaseException | str] = []
        db = self._get_db_manager()
        client = self._get_explorer_client()
        components = self._build_components(client, db, cache)

        try:
            await db.check_connection()
        except Exception as e:
            raise FatalError(f"Cannot connect to database: {e}") from e

        try:
            status = await client.get_status()
        except RequestError as e:
            raise FatalError(f"Failed to get current block height: {e}") from e
        logger.info("Current block height: %d (last block at %s)", status.height, status.last_block_time.isoformat())

        range_outcome = await components.locator.resolve_range(self._window, status.height)
        block_range = range_outcome.unwrap()
        if isinstance(range_outcome, Degraded):
            logger.warning("Using degraded block range: %s", range_outcome.cause)
            causes.append(range_outcome.cause)
        self._summary.block_range = block_range
        logger.info(
            "Block range: %d to %d (%s to %s)",
            block_range.from_block,
            block_range.to_block,
            datetime.fromtimestamp(block_range.start_timestamp, tz=UTC).isoformat(),
            datetime.fromtimestamp(block_range.end_timestamp, tz=UTC).isoformat(),
        )

        await self._log_price_coverage(db)

        blockchain_id, wallets = await self._load_wallets(db)
        self._summary.wallets_total = len(wallets)
        logger.info("Found %d wallets for %s", len(wallets), settings.blockchain.symbol)

        parallelism = settings.ingestion.max_parallel_wallets
        if parallelism <= 1:
            results: list[tuple[WalletStatus, int]] = []
            for wallet in wallets:
                results.append(await self._process_wallet(components, wallet, blockchain_id, block_range))
        else:
            semaphore = asyncio.Semaphore(parallelism)

            async def bounded(wallet: WalletDTO) -> tuple[WalletStatus, int]:
                async with semaphore:
                    return await self._process_wallet(components, wallet, blockchain_id, block_range)

            results = list(await asyncio.gather(*(bounded(w) for w in wallets)))

        for wallet, (wallet_status, saved) in zip(wallets, results, strict=True):
            self._summary.transactions_saved += saved
            if wallet_status is WalletStatus.FAILED:
                self._summary.wallets_failed += 1
                causes.append(f"wallet {wallet.address} failed")
            else:
                self._summary.wallets_processed += 1
                if wallet_status is WalletStatus.DEGRADED:
                    self._summary.wallets_degraded += 1
                    causes.append(f"wallet {wallet.address} degraded")

        return causes

    def _get_db_manager(self) -> DatabaseManager:
        if self._db_manager is None:
            self._db_manager = DatabaseManager(self._settings.database.url)
        return self._db_manager

    def _get_explorer_client(self) -> ExplorerClient:
        if self._explorer_client is None:
            explorer = self._settings.explorer
            self._explorer_client = ExplorerClient(
                explorer.url,
                api_key=explorer.api_key.get_secret_value() if explorer.api_key else None,
                request_delay_seconds=explorer.request_delay_seconds,
                max_retries=explorer.max_retries,
                retry_base_delay_seconds=explorer.retry_base_delay_seconds,
                timeout_seconds=explorer.request_timeout_seconds,
            )
        return self._explorer_client

    def _build_components(self, client: ExplorerClient, db: DatabaseManager, cache: RunCache) -> _RunComponents:
        settings = self._settings

        resolver = PriceResolver(
            db.session_factory,
            cache,
            self._window,
            symbol=settings.blockchain.symbol,
            fallback_usdt=settings.price.fallback_usdt,
            fallback_btc=settings.price.fallback_btc,
        )
        return _RunComponents(
            locator=BlockTimeLocator(client, cache),
            fetcher=TransactionFetcher(
                client,
                self._window,
                page_size=settings.explorer.page_size,
                max_pages=settings.explorer.max_pages,
            ),
            persister=BatchPersister(
                db.session_factory,
                resolver,
                self._window,
                symbol=settings.blockchain.symbol,
                batch_size=settings.ingestion.batch_size,
                batch_delay_seconds=settings.ingestion.batch_delay_seconds,
                sleep=self._sleep,
            ),
        )

    async def _log_price_coverage(self, db: DatabaseManager) -> None:
        symbol = self._settings.blockchain.symbol
        try:
            async with db.get_async_session() as session:
                coverage = await TokenPriceRepository(session).coverage(symbol)
        except SQLAlchemyError as e:
            logger.warning("Could not read price coverage for %s: %s", symbol, e)
            return

        if coverage.total == 0:
            logger.warning("No price data recorded for %s; fallback prices will be used", symbol)
            return
        logger.info(
            "Price coverage for %s: %s to %s (%d points)",
            symbol,
            coverage.first_price,
            coverage.last_price,
            coverage.total,
        )

    async def _load_wallets(self, db: DatabaseManager) -> tuple[int, list[WalletDTO]]:
        symbol = self._settings.blockchain.symbol
        try:
            async with db.get_async_session() as session:
                blockchain_id = await BlockchainRepository(session).get_id_by_symbol(symbol)
                if blockchain_id is None:
                    raise FatalError(f"Blockchain {symbol} not found in database")
                wallets = await WalletRepository(session).list_by_blockchain(blockchain_id)
        except SQLAlchemyError as e:
            raise FatalError(f"Failed to load wallets for {symbol}: {e}") from e
        return blockchain_id, wallets

    async def _process_wallet(
        self,
        components: _RunComponents,
        wallet: WalletDTO,
        blockchain_id: int,
        block_range: BlockRange,
    ) -> tuple[WalletStatus, int]:
        logger.info("Processing wallet: %s", wallet.address)
        try:
            fetched = await components.fetcher.fetch(wallet.address, block_range.from_block, block_range.to_block)
            transactions = fetched.unwrap()
            if not transactions:
                logger.info("No transactions found for wallet %s", wallet.address)
                saved = 0
            else:
                saved = await components.persister.persist(
                    transactions,
                    wallet_address=wallet.address,
                    blockchain_id=blockchain_id,
                )
        except Exception:
            logger.exception("Error processing wallet %s", wallet.address)
            return WalletStatus.FAILED, 0

        logger.info("Saved %d transactions for wallet %s", saved, wallet.address)
        if isinstance(fetched, Degraded):
            logger.warning("Wallet %s ingested from degraded fetch: %s", wallet.address, fetched.cause)
            return WalletStatus.DEGRADED, saved
        return WalletStatus.OK, saved

    def _log_summary(self) -> None:
        s = self._summary
        duration = (s.finished_at - s.started_at).total_seconds() if s.started_at and s.finished_at else 0.0
        logger.info(
            "Ingestion finished in %.1fs: wallets=%d processed=%d degraded=%d failed=%d transactions_saved=%d",
            duration,
            s.wallets_total,
            s.wallets_processed,
            s.wallets_degraded,
            s.wallets_failed,
            s.transactions_saved,
        )

    async def _cleanup(self) -> None:
        """Release run-scoped resources."""
        if self._cache is not None:
            self._cache.clear()
            self._cache = None

        if self._owns_client and self._explorer_client is not None:
            try:
                await self._explorer_client.aclose()
            except Exception as e:
                logger.warning("Error closing explorer client: %s", e)
            self._explorer_client = None

        if self._owns_db and self._db_manager is not None:
            try:
                await self._db_manager.dispose_async()
            except Exception as e:
                logger.warning("Error closing database: %s", e)
            self._db_manager = None
