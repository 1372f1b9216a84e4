"""Explorer API layer - Blockbook REST client and response models."""

from chain_volume_ingestor.explorer.client import ExplorerApiError, ExplorerClient
from chain_volume_ingestor.explorer.models import (
    BlockInfo,
    ChainStatus,
    RawTransaction,
    TxEndpoint,
)

__all__ = [
    "BlockInfo",
    "ChainStatus",
    "ExplorerApiError",
    "ExplorerClient",
    "RawTransaction",
    "TxEndpoint",
]
