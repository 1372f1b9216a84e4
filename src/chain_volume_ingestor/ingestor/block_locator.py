"""Resolve a calendar window to a block-height range.

Block heights are located by a bounded binary search over block timestamps.
Block metadata is fetched through the explorer client and memoized in the
run cache, so the end-edge search reuses probes made for the start edge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from chain_volume_ingestor.exceptions import NotFoundError, RequestError
from chain_volume_ingestor.explorer.client import ExplorerClient
from chain_volume_ingestor.explorer.models import BlockInfo
from chain_volume_ingestor.ingestor.cache import RunCache
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.outcome import Degraded, Ok, Outcome

logger = logging.getLogger(__name__)

MAX_SEARCH_ITERATIONS = 20
SAFETY_MARGIN_BLOCKS = 10


@dataclass(frozen=True)
class BlockRange:
    """Inclusive block range plus the unix bounds of the window it covers."""

    from_block: int
    to_block: int
    start_timestamp: int
    end_timestamp: int

    @classmethod
    def full(cls, current_height: int, window: DateWindow) -> BlockRange:
        return cls(
            from_block=0,
            to_block=max(current_height, 0),
            start_timestamp=window.start_timestamp,
            end_timestamp=window.end_timestamp,
        )


class BlockTimeLocator:
    """Finds the last block strictly before a target time."""

    def __init__(
        self,
        client: ExplorerClient,
        cache: RunCache,
        *,
        max_iterations: int = MAX_SEARCH_ITERATIONS,
        safety_margin: int = SAFETY_MARGIN_BLOCKS,
    ) -> None:
        self._client = client
        self._cache = cache
        self._max_iterations = max_iterations
        self._safety_margin = safety_margin

    async def get_block(self, height: int) -> BlockInfo:
        cached = self._cache.get_block(height)
        if cached is not None:
            return cached
        block = await self._client.get_block(height)
        return self._cache.put_block(block)

    async def locate(self, target: datetime, low: int, high: int) -> BlockInfo:
        """Binary-search ``[low, high]`` for the last block whose time precedes ``target``.

        The search is capped at ``max_iterations`` probes, so noisy
        (non-monotonic) timestamps still terminate.

        Raises:
            NotFoundError: If a probed block has no timestamp, or no block in
                the bounds precedes the target.
            RequestError: If a block lookup fails after retries.
        """
        if target.tzinfo is None:
            raise ValueError("target must be timezone-aware")

        best: BlockInfo | None = None
        iterations = 0

        while low <= high and iterations < self._max_iterations:
            iterations += 1
            mid = (low + high) // 2
            block = await self.get_block(mid)
            block_time = block.timestamp
            if block_time is None:
                logger.warning("Block %d not found or has no timestamp", mid)
                raise NotFoundError(f"Block {mid} has no timestamp")

            logger.debug("Checking block %d (%s) vs target %s", mid, block_time.isoformat(), target.isoformat())

            if block_time < target:
                best = block
                low = mid + 1
            else:
                high = mid - 1

        if best is None:
            raise NotFoundError(f"No block before {target.isoformat()} within bounds")

        logger.info("Found block %d with time %s for target %s", best.height, best.timestamp, target.isoformat())
        return best

    async def resolve_range(self, window: DateWindow, current_height: int) -> Outcome[BlockRange]:
        """Resolve the block range covering ``window``.

        The range is widened by the safety margin on both edges; blocks
        fetched twice are absorbed by the tx_hash uniqueness constraint. An
        edge that cannot be located falls back to the chain bound for that
        edge and the result is reported as degraded.
        """
        height = max(current_height, 0)
        causes: list[BaseException] = []

        try:
            start = await self.locate(window.start, 0, height)
            start_height = start.height
            from_block = max(start_height - self._safety_margin, 0)
        except (NotFoundError, RequestError) as e:
            logger.warning("Falling back to block 0 for window start: %s", e)
            causes.append(e)
            start_height = 0
            from_block = 0

        try:
            end = await self.locate(window.end, start_height, height)
            to_block = min(end.height + self._safety_margin, height)
        except (NotFoundError, RequestError) as e:
            logger.warning("Falling back to block %d for window end: %s", height, e)
            causes.append(e)
            to_block = height

        block_range = BlockRange(
            from_block=min(from_block, to_block),
            to_block=to_block,
            start_timestamp=window.start_timestamp,
            end_timestamp=window.end_timestamp,
        )
        if causes:
            return Degraded(block_range, causes[0])
        return Ok(block_range)
