"""Data ingestion layer - Block range resolution and transaction retrieval."""

from chain_volume_ingestor.ingestor.block_locator import BlockRange, BlockTimeLocator
from chain_volume_ingestor.ingestor.cache import RunCache
from chain_volume_ingestor.ingestor.fetcher import TransactionFetcher
from chain_volume_ingestor.ingestor.window import DateWindow

__all__ = [
    "BlockRange",
    "BlockTimeLocator",
    "DateWindow",
    "RunCache",
    "TransactionFetcher",
]
