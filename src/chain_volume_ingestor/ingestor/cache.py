"""Run-scoped memoization for block and price lookups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chain_volume_ingestor.explorer.models import BlockInfo
    from chain_volume_ingestor.pricing.resolver import PricePair


@dataclass
class RunCache:
    """Write-once-per-key caches owned by a single pipeline run.

    Entries are never overwritten, so concurrent wallet tasks may read and
    populate the cache without coordination. The pipeline creates one at run
    start and drops it at run end; nothing is persisted.
    """

    blocks: dict[int, BlockInfo] = field(default_factory=dict)
    prices: dict[datetime, PricePair] = field(default_factory=dict)

    def get_block(self, height: int) -> BlockInfo | None:
        return self.blocks.get(height)

    def put_block(self, block: BlockInfo) -> BlockInfo:
        return self.blocks.setdefault(block.height, block)

    def get_price(self, hour: datetime) -> PricePair | None:
        return self.prices.get(hour)

    def put_price(self, hour: datetime, price: PricePair) -> PricePair:
        return self.prices.setdefault(hour, price)

    def clear(self) -> None:
        self.blocks.clear()
        self.prices.clear()
