"""Transaction direction and amount classification.

Pure functions over a wallet address and a transaction's inputs and
outputs; nothing here performs I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from chain_volume_ingestor.explorer.models import RawTransaction, TxEndpoint, to_coins

# Suspicion thresholds
SUSPICIOUS_VALUE_COINS = Decimal("5000")
SUSPICIOUS_OUTPUT_COUNT = 10


class Direction(str, Enum):
    """Direction of value flow relative to the tracked wallet."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ClassifiedTransaction:
    """A transaction as seen from one wallet.

    Attributes:
        txid: Transaction hash.
        direction: Value flow relative to the wallet.
        amount: Value moved, in whole coins (never negative).
        fee: Network fee, in whole coins.
        suspicious: True for very large or very fan-out transactions.
    """

    txid: str
    direction: Direction
    amount: Decimal
    fee: Decimal
    suspicious: bool


def _value_to(endpoints: Iterable[TxEndpoint], wallet_address: str) -> int:
    return sum(e.value for e in endpoints if wallet_address in e.addresses)


def classify_direction(
    inputs: Iterable[TxEndpoint],
    outputs: Iterable[TxEndpoint],
    wallet_address: str,
) -> Direction:
    """Classify a transaction's direction relative to ``wallet_address``.

    A wallet that both spends and receives is sending when it gets back less
    than it put in (change output), otherwise the transfer is internal.
    """
    inputs = tuple(inputs)
    outputs = tuple(outputs)
    is_sender = any(wallet_address in e.addresses for e in inputs)
    is_receiver = any(wallet_address in e.addresses for e in outputs)

    if is_sender and is_receiver:
        received = _value_to(outputs, wallet_address)
        sent = _value_to(inputs, wallet_address)
        return Direction.OUTGOING if received < sent else Direction.INTERNAL
    if is_sender:
        return Direction.OUTGOING
    return Direction.INCOMING


def compute_amount(
    inputs: Iterable[TxEndpoint],
    outputs: Iterable[TxEndpoint],
    wallet_address: str,
    direction: Direction,
) -> Decimal:
    """Compute the amount moved for ``wallet_address``, in whole coins."""
    inputs = tuple(inputs)
    outputs = tuple(outputs)
    received = _value_to(outputs, wallet_address)

    if direction is Direction.OUTGOING:
        base_units = _value_to(inputs, wallet_address) - received
    else:
        base_units = received

    return to_coins(max(base_units, 0))


def is_suspicious(tx: RawTransaction) -> bool:
    return to_coins(tx.total_value) > SUSPICIOUS_VALUE_COINS or len(tx.vout) > SUSPICIOUS_OUTPUT_COUNT


def classify(tx: RawTransaction, wallet_address: str) -> ClassifiedTransaction:
    """Classify ``tx`` from the point of view of ``wallet_address``.

    Raises:
        ValueError: If the transaction has no txid.
    """
    if not tx.txid:
        raise ValueError("transaction has no txid")

    direction = classify_direction(tx.vin, tx.vout, wallet_address)
    return ClassifiedTransaction(
        txid=tx.txid,
        direction=direction,
        amount=compute_amount(tx.vin, tx.vout, wallet_address, direction),
        fee=to_coins(tx.fees),
        suspicious=is_suspicious(tx),
    )
