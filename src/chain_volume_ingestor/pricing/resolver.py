"""Historical price resolution with tiered fallback.

This module provides the PriceResolver class that maps a transaction time to
the hourly USDT/BTC price recorded for the configured token. Lookups walk
down a fixed ladder until something is found:

1. The price recorded for the exact UTC hour
2. The latest price at or before that hour
3. The latest price recorded at all
4. Fixed fallback constants (reported as degraded)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chain_volume_ingestor.ingestor.cache import RunCache
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.outcome import Degraded, Ok, Outcome
from chain_volume_ingestor.storage.repos import TokenPriceDTO, TokenPriceRepository

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_FALLBACK_USDT = Decimal("100")
DEFAULT_FALLBACK_BTC = Decimal("0.002")


@dataclass(frozen=True)
class PricePair:
    """USDT and BTC price of one coin."""

    price_usdt: Decimal
    price_btc: Decimal

    @classmethod
    def zero(cls) -> PricePair:
        return cls(price_usdt=Decimal(0), price_btc=Decimal(0))

    @classmethod
    def from_dto(cls, dto: TokenPriceDTO) -> PricePair:
        return cls(price_usdt=Decimal(dto.price_usdt), price_btc=Decimal(dto.price_btc))


def truncate_to_hour(timestamp: int | float) -> datetime:
    """Return the UTC hour bucket a unix timestamp falls into."""
    moment = datetime.fromtimestamp(timestamp, tz=UTC)
    return moment.replace(minute=0, second=0, microsecond=0)


class PriceResolver:
    """Resolves point-in-time prices for the configured token.

    Each lookup opens its own short-lived session so no connection is held
    while explorer requests are in flight. Prices found in the store are
    memoized per hour in the run cache; fallback values are not, so a later
    lookup still sees rows that appear mid-run.

    Example:
        ```python
        resolver = PriceResolver(db.session_factory, RunCache(), window, symbol="ltc")
        outcome = await resolver.resolve(tx.block_time)
        price = outcome.unwrap()
        ```
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: RunCache,
        window: DateWindow,
        *,
        symbol: str,
        fallback_usdt: Decimal = DEFAULT_FALLBACK_USDT,
        fallback_btc: Decimal = DEFAULT_FALLBACK_BTC,
    ) -> None:
        """Initialize the price resolver.

        Args:
            session_factory: Async session factory for the price store.
            cache: Run-scoped cache the resolved hours are memoized in.
            window: Ingestion window; timestamps outside it price at zero.
            symbol: Token symbol as stored in ``token_prices``.
            fallback_usdt: USDT price used when the store has nothing usable.
            fallback_btc: BTC price used when the store has nothing usable.
        """
        self._session_factory = session_factory
        self._cache = cache
        self._window = window
        self._symbol = symbol
        self._fallback = PricePair(price_usdt=fallback_usdt, price_btc=fallback_btc)

    @property
    def fallback(self) -> PricePair:
        return self._fallback

    async def resolve(self, timestamp: int | float) -> Outcome[PricePair]:
        """Resolve the price for a unix timestamp (seconds).

        Never raises: store errors and empty stores yield the fallback pair
        wrapped in ``Degraded``.

        Args:
            timestamp: Transaction time in unix seconds.

        Returns:
            ``Ok`` with the stored (or zero, when out of window) price, or
            ``Degraded`` with the fallback price.
        """
        if not self._window.contains(timestamp):
            logger.debug("Timestamp %s is outside the ingestion window; pricing at zero", timestamp)
            return Ok(PricePair.zero())

        hour = truncate_to_hour(timestamp)
        cached = self._cache.get_price(hour)
        if cached is not None:
            return Ok(cached)

        try:
            found = await self._lookup(hour)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Price lookup for %s at %s failed, using fallback: %s", self._symbol, hour.isoformat(), e)
            return Degraded(self._fallback, e)

        if found is None:
            logger.warning(
                "No price data for %s, using fallback USDT=%s BTC=%s",
                self._symbol,
                self._fallback.price_usdt,
                self._fallback.price_btc,
            )
            return Degraded(self._fallback, f"no price recorded for {self._symbol}")

        return Ok(self._cache.put_price(hour, found))

    async def _lookup(self, hour: datetime) -> PricePair | None:
        async with self._session_factory() as session:
            repo = TokenPriceRepository(session)
            tiers: list[tuple[str, Callable[[], Awaitable[TokenPriceDTO | None]]]] = [
                ("exact hour", lambda: repo.get_exact(self._symbol, hour)),
                ("latest at or before hour", lambda: repo.get_latest_at_or_before(self._symbol, hour)),
                ("latest recorded", lambda: repo.get_latest(self._symbol)),
            ]
            for tier, query in tiers:
                dto = await query()
                if dto is not None:
                    logger.debug("Price for %s at %s resolved by %s", self._symbol, hour.isoformat(), tier)
                    return PricePair.from_dto(dto)
        return None
