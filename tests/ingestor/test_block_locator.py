"""Tests for block range resolution."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from chain_volume_ingestor.exceptions import NotFoundError, RequestError
from chain_volume_ingestor.explorer.models import BlockInfo
from chain_volume_ingestor.ingestor.block_locator import BlockRange, BlockTimeLocator
from chain_volume_ingestor.ingestor.cache import RunCache
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.outcome import Degraded, Ok

GENESIS = int(datetime(2025, 2, 1, tzinfo=UTC).timestamp())
BLOCK_INTERVAL = 150
HEIGHT = 30_000


def block_time(height: int) -> int:
    return GENESIS + height * BLOCK_INTERVAL


def synthetic_client(height: int = HEIGHT) -> AsyncMock:
    """Explorer double whose blocks are spaced exactly BLOCK_INTERVAL apart."""
    client = AsyncMock()

    async def get_block(h: int) -> BlockInfo:
        if h < 0 or h > height:
            raise RequestError(f"block {h} out of range", attempts=1)
        return BlockInfo(height=h, time=block_time(h))

    client.get_block.side_effect = get_block
    return client


def last_block_before(target: datetime, height: int = HEIGHT) -> int:
    return max(h for h in range(height + 1) if block_time(h) < target.timestamp())


# ============================================================================
# locate
# ============================================================================


class TestLocate:
    """Tests for BlockTimeLocator.locate."""

    @pytest.mark.asyncio
    async def test_finds_last_block_before_target(self) -> None:
        locator = BlockTimeLocator(synthetic_client(), RunCache())
        target = datetime.fromtimestamp(block_time(12_345) + 1, tz=UTC)

        block = await locator.locate(target, 0, HEIGHT)

        assert block.height == 12_345

    @pytest.mark.asyncio
    async def test_exact_match_returns_previous_block(self) -> None:
        locator = BlockTimeLocator(synthetic_client(), RunCache())
        target = datetime.fromtimestamp(block_time(500), tz=UTC)

        block = await locator.locate(target, 0, HEIGHT)

        assert block.height == 499
        assert block.timestamp is not None
        assert block.timestamp < target

    @pytest.mark.asyncio
    @pytest.mark.parametrize("height", [1, 7, 1_000, HEIGHT])
    async def test_matches_linear_scan(self, height: int) -> None:
        locator = BlockTimeLocator(synthetic_client(height), RunCache())
        target = datetime.fromtimestamp(block_time(height // 2) + 75, tz=UTC)

        block = await locator.locate(target, 0, height)

        assert block.height == last_block_before(target, height)

    @pytest.mark.asyncio
    async def test_target_before_genesis_not_found(self) -> None:
        locator = BlockTimeLocator(synthetic_client(), RunCache())

        with pytest.raises(NotFoundError):
            await locator.locate(datetime.fromtimestamp(GENESIS - 1, tz=UTC), 0, HEIGHT)

    @pytest.mark.asyncio
    async def test_block_without_time_not_found(self) -> None:
        client = AsyncMock()
        client.get_block.side_effect = lambda h: BlockInfo(height=h, time=None)
        locator = BlockTimeLocator(client, RunCache())

        with pytest.raises(NotFoundError):
            await locator.locate(datetime(2025, 3, 1, tzinfo=UTC), 0, 100)

    @pytest.mark.asyncio
    async def test_iteration_cap(self) -> None:
        client = synthetic_client()
        locator = BlockTimeLocator(client, RunCache(), max_iterations=3)

        await locator.locate(datetime.fromtimestamp(block_time(HEIGHT), tz=UTC), 0, HEIGHT)

        assert client.get_block.await_count == 3

    @pytest.mark.asyncio
    async def test_naive_target_rejected(self) -> None:
        locator = BlockTimeLocator(synthetic_client(), RunCache())

        with pytest.raises(ValueError):
            await locator.locate(datetime(2025, 3, 1), 0, HEIGHT)

    @pytest.mark.asyncio
    async def test_probes_are_cached(self) -> None:
        client = synthetic_client()
        cache = RunCache()
        locator = BlockTimeLocator(client, cache)
        target = datetime(2025, 3, 5, tzinfo=UTC)

        await locator.locate(target, 0, HEIGHT)
        probes = client.get_block.await_count
        await locator.locate(target, 0, HEIGHT)

        assert probes > 0
        assert client.get_block.await_count == probes
        assert len(cache.blocks) == probes


# ============================================================================
# resolve_range
# ============================================================================


class TestResolveRange:
    """Tests for BlockTimeLocator.resolve_range."""

    @pytest.mark.asyncio
    async def test_widens_by_safety_margin(self) -> None:
        window = DateWindow.from_dates(date(2025, 3, 1), date(2025, 3, 10))
        locator = BlockTimeLocator(synthetic_client(), RunCache())

        outcome = await locator.resolve_range(window, HEIGHT)

        assert isinstance(outcome, Ok)
        block_range = outcome.value
        assert block_range.from_block == last_block_before(window.start) - 10
        assert block_range.to_block == last_block_before(window.end) + 10
        assert block_range.start_timestamp == window.start_timestamp
        assert block_range.end_timestamp == window.end_timestamp

    @pytest.mark.asyncio
    async def test_range_covers_every_window_block(self) -> None:
        window = DateWindow.from_dates(date(2025, 3, 1), date(2025, 3, 10))
        locator = BlockTimeLocator(synthetic_client(), RunCache())

        block_range = (await locator.resolve_range(window, HEIGHT)).unwrap()

        in_window = [h for h in range(HEIGHT + 1) if window.contains(block_time(h))]
        assert block_range.from_block <= in_window[0]
        assert block_range.to_block >= in_window[-1]

    @pytest.mark.asyncio
    async def test_end_clamped_to_current_height(self) -> None:
        # The window runs past the chain tip.
        window = DateWindow.from_dates(date(2025, 3, 1), date(2025, 4, 30))
        locator = BlockTimeLocator(synthetic_client(), RunCache())

        block_range = (await locator.resolve_range(window, HEIGHT)).unwrap()

        assert block_range.to_block == HEIGHT
        assert 0 <= block_range.from_block <= block_range.to_block

    @pytest.mark.asyncio
    async def test_request_failure_falls_back_to_full_range(self) -> None:
        client = AsyncMock()
        client.get_block.side_effect = RequestError("down", attempts=3)
        window = DateWindow.from_dates(date(2025, 3, 1), date(2025, 3, 10))
        locator = BlockTimeLocator(client, RunCache())

        outcome = await locator.resolve_range(window, HEIGHT)

        assert isinstance(outcome, Degraded)
        assert isinstance(outcome.cause, RequestError)
        assert outcome.value == BlockRange.full(HEIGHT, window)

    @pytest.mark.asyncio
    async def test_malformed_block_payload_falls_back_to_full_range(self) -> None:
        client = AsyncMock()
        client.get_block.side_effect = lambda h: BlockInfo.from_dict({"height": h, "time": "n/a"}, height=h)
        window = DateWindow.from_dates(date(2025, 3, 1), date(2025, 3, 10))
        locator = BlockTimeLocator(client, RunCache())

        outcome = await locator.resolve_range(window, HEIGHT)

        assert isinstance(outcome, Degraded)
        assert isinstance(outcome.cause, NotFoundError)
        assert outcome.value == BlockRange.full(HEIGHT, window)

    @pytest.mark.asyncio
    async def test_start_before_chain_falls_back_to_zero(self) -> None:
        window = DateWindow.from_dates(date(2025, 1, 1), date(2025, 2, 2))
        locator = BlockTimeLocator(synthetic_client(), RunCache())

        outcome = await locator.resolve_range(window, HEIGHT)

        assert isinstance(outcome, Degraded)
        assert isinstance(outcome.cause, NotFoundError)
        block_range = outcome.value
        assert block_range.from_block == 0
        assert block_range.to_block == last_block_before(window.end) + 10

    @pytest.mark.asyncio
    async def test_end_search_reuses_cached_probes(self) -> None:
        client = synthetic_client()
        cache = RunCache()
        window = DateWindow.from_dates(date(2025, 3, 1), date(2025, 3, 1) + timedelta(days=1))
        locator = BlockTimeLocator(client, cache)

        await locator.resolve_range(window, HEIGHT)

        # Every probe went through the cache exactly once.
        assert client.get_block.await_count == len(cache.blocks)
