"""Data models for Blockbook explorer responses."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

# 1 coin = 100_000_000 satoshi / litoshi
BASE_UNITS_PER_COIN = Decimal(100_000_000)


def parse_base_units(value: Any) -> int:
    """Parse an explorer amount (decimal string in base units) into an int.

    Unparsable or missing values count as zero.
    """
    if value is None or value == "":
        return 0
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return 0


def to_coins(base_units: int | Decimal) -> Decimal:
    """Convert base units (satoshi/litoshi) to whole coins."""
    return Decimal(base_units) / BASE_UNITS_PER_COIN


@dataclass(frozen=True)
class ChainStatus:
    """Current chain tip as reported by ``GET /status``."""

    height: int
    last_block_time: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainStatus:
        blockbook = data.get("blockbook") or {}
        last_block_time = datetime.now(UTC)
        raw_time = blockbook.get("lastBlockTime")
        if raw_time:
            with contextlib.suppress(ValueError, AttributeError):
                last_block_time = datetime.fromisoformat(str(raw_time).replace("Z", "+00:00"))
        return cls(
            height=int(blockbook.get("bestHeight") or 0),
            last_block_time=last_block_time,
        )


@dataclass(frozen=True)
class BlockInfo:
    """A block height with its unix timestamp (None when the explorer omits it)."""

    height: int
    time: int | None

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, height: int) -> BlockInfo:
        try:
            block_height = int(data.get("height", height))
            raw_time = data.get("time")
            block_time = int(raw_time) if raw_time else None
        except (TypeError, ValueError):
            # Unparsable payloads read as a block without a time.
            return cls(height=height, time=None)
        return cls(height=block_height, time=block_time)

    @property
    def timestamp(self) -> datetime | None:
        if self.time is None:
            return None
        return datetime.fromtimestamp(self.time, tz=UTC)


@dataclass(frozen=True)
class TxEndpoint:
    """One transaction input or output: owning addresses and value in base units."""

    addresses: frozenset[str]
    value: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TxEndpoint:
        return cls(
            addresses=frozenset(str(a) for a in (data.get("addresses") or ())),
            value=parse_base_units(data.get("value")),
        )


@dataclass(frozen=True)
class RawTransaction:
    """A transaction as returned by the explorer's address endpoint.

    ``txid`` and ``block_time`` may be missing; validation happens downstream.
    """

    txid: str | None
    block_time: int | None
    vin: tuple[TxEndpoint, ...]
    vout: tuple[TxEndpoint, ...]
    fees: int
    value: int | None = None
    from_address: str | None = None
    to_address: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawTransaction:
        raw_time = data.get("blockTime") or data.get("time")
        vin_data = data.get("vin") or []
        vout_data = data.get("vout") or []
        value = data.get("value")
        return cls(
            txid=str(data["txid"]) if data.get("txid") else None,
            block_time=int(raw_time) if raw_time else None,
            vin=tuple(TxEndpoint.from_dict(v) for v in vin_data),
            vout=tuple(TxEndpoint.from_dict(v) for v in vout_data),
            fees=parse_base_units(data.get("fees")),
            value=parse_base_units(value) if value is not None else None,
            from_address=_first_listed_address(vin_data),
            to_address=_first_listed_address(vout_data),
        )

    @property
    def timestamp(self) -> datetime | None:
        if self.block_time is None:
            return None
        return datetime.fromtimestamp(self.block_time, tz=UTC)

    @property
    def total_value(self) -> int:
        """Total transaction value in base units (sum of outputs when not reported)."""
        if self.value is not None:
            return self.value
        return sum(o.value for o in self.vout)


def _first_listed_address(entries: list[dict[str, Any]]) -> str | None:
    # Address sets are unordered; keep the explorer's first listed address for display columns.
    if not entries:
        return None
    addresses = entries[0].get("addresses") or []
    return str(addresses[0]) if addresses else None
