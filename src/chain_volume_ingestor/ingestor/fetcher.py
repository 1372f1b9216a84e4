"""Paginated retrieval of an address's transactions within the date window."""

from __future__ import annotations

import logging

from chain_volume_ingestor.exceptions import RequestError
from chain_volume_ingestor.explorer.client import ExplorerClient
from chain_volume_ingestor.explorer.models import RawTransaction
from chain_volume_ingestor.ingestor.window import DateWindow
from chain_volume_ingestor.outcome import Degraded, Ok, Outcome

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 20


class TransactionFetcher:
    """Pages through ``/address/{address}`` and keeps in-window transactions."""

    def __init__(
        self,
        client: ExplorerClient,
        window: DateWindow,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self._client = client
        self._window = window
        self._page_size = page_size
        self._max_pages = max_pages

    async def fetch(self, address: str, from_block: int, to_block: int) -> Outcome[list[RawTransaction]]:
        """Fetch all in-window transactions for ``address``.

        A request failure after retries yields ``Degraded([])``: the wallet is
        treated as having no transactions and the run continues.
        """
        transactions: list[RawTransaction] = []
        page = 1

        try:
            while True:
                if page > self._max_pages:
                    logger.warning(
                        "Stopped paging %s at the %d page cap; later transactions were not fetched",
                        address,
                        self._max_pages,
                    )
                    return Degraded(transactions, f"page cap {self._max_pages} reached")

                raw_page = await self._client.get_address_page(
                    address,
                    from_block=from_block,
                    to_block=to_block,
                    page=page,
                    page_size=self._page_size,
                )
                if not raw_page:
                    break

                logger.debug("Found %d transactions on page %d for address %s", len(raw_page), page, address)
                transactions.extend(self._keep_in_window(raw_page))

                if len(raw_page) < self._page_size:
                    break
                page += 1
        except RequestError as e:
            logger.error("Failed to get transactions for %s: %s", address, e)
            return Degraded([], e)

        logger.info("Total filtered transactions for %s: %d", address, len(transactions))
        return Ok(transactions)

    def _keep_in_window(self, raw_page: list[dict]) -> list[RawTransaction]:
        kept: list[RawTransaction] = []
        for data in raw_page:
            try:
                tx = RawTransaction.from_dict(data)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping unparsable transaction %s: %s", data.get("txid"), e)
                continue
            if tx.block_time is None:
                logger.debug("Transaction %s has no timestamp", tx.txid)
                continue
            if not self._window.contains(tx.block_time):
                logger.debug("Transaction %s with time %s outside range", tx.txid, tx.timestamp)
                continue
            kept.append(tx)
        return kept
