"""Tests for transaction direction and amount classification."""

from decimal import Decimal

import pytest

from chain_volume_ingestor.detector.classifier import (
    ClassifiedTransaction,
    Direction,
    classify,
    classify_direction,
    compute_amount,
    is_suspicious,
)
from chain_volume_ingestor.explorer.models import RawTransaction, TxEndpoint

WALLET = "Lwallet"
OTHER = "Lother"
COIN = 100_000_000


def endpoint(*addresses: str, value: int) -> TxEndpoint:
    return TxEndpoint(addresses=frozenset(addresses), value=value)


# ============================================================================
# Direction
# ============================================================================


class TestClassifyDirection:
    """Tests for classify_direction."""

    def test_only_in_outputs_is_incoming(self) -> None:
        inputs = [endpoint(OTHER, value=5 * COIN)]
        outputs = [endpoint(WALLET, value=3 * COIN), endpoint(OTHER, value=2 * COIN)]

        assert classify_direction(inputs, outputs, WALLET) is Direction.INCOMING

    def test_only_in_inputs_is_outgoing(self) -> None:
        inputs = [endpoint(WALLET, value=5 * COIN)]
        outputs = [endpoint(OTHER, value=5 * COIN)]

        assert classify_direction(inputs, outputs, WALLET) is Direction.OUTGOING

    def test_change_back_smaller_than_spent_is_outgoing(self) -> None:
        inputs = [endpoint(WALLET, value=10)]
        outputs = [endpoint(OTHER, value=7), endpoint(WALLET, value=3)]

        assert classify_direction(inputs, outputs, WALLET) is Direction.OUTGOING

    def test_received_at_least_spent_is_internal(self) -> None:
        inputs = [endpoint(WALLET, value=10)]
        outputs = [endpoint(WALLET, value=10)]

        assert classify_direction(inputs, outputs, WALLET) is Direction.INTERNAL

    def test_not_involved_defaults_to_incoming(self) -> None:
        inputs = [endpoint(OTHER, value=1)]
        outputs = [endpoint(OTHER, value=1)]

        assert classify_direction(inputs, outputs, WALLET) is Direction.INCOMING

    def test_multi_address_endpoint_counts(self) -> None:
        inputs = [endpoint(OTHER, WALLET, value=4)]
        outputs = [endpoint(OTHER, value=4)]

        assert classify_direction(inputs, outputs, WALLET) is Direction.OUTGOING


# ============================================================================
# Amount
# ============================================================================


class TestComputeAmount:
    """Tests for compute_amount."""

    def test_outgoing_is_spent_minus_change(self) -> None:
        inputs = [endpoint(WALLET, value=10 * COIN)]
        outputs = [endpoint(OTHER, value=7 * COIN), endpoint(WALLET, value=3 * COIN)]

        amount = compute_amount(inputs, outputs, WALLET, Direction.OUTGOING)

        assert amount == Decimal("7")

    def test_incoming_sums_outputs_to_wallet(self) -> None:
        inputs = [endpoint(OTHER, value=10 * COIN)]
        outputs = [
            endpoint(WALLET, value=COIN),
            endpoint(OTHER, value=COIN),
            endpoint(WALLET, value=COIN // 2),
        ]

        amount = compute_amount(inputs, outputs, WALLET, Direction.INCOMING)

        assert amount == Decimal("1.5")

    def test_internal_uses_received(self) -> None:
        inputs = [endpoint(WALLET, value=2 * COIN)]
        outputs = [endpoint(WALLET, value=2 * COIN)]

        assert compute_amount(inputs, outputs, WALLET, Direction.INTERNAL) == Decimal("2")

    def test_never_negative(self) -> None:
        inputs = [endpoint(WALLET, value=1)]
        outputs = [endpoint(WALLET, value=5)]

        assert compute_amount(inputs, outputs, WALLET, Direction.OUTGOING) == Decimal(0)


# ============================================================================
# Full classification
# ============================================================================


def make_tx(vin: list[TxEndpoint], vout: list[TxEndpoint], *, value: int | None = None) -> RawTransaction:
    return RawTransaction(txid="abc", block_time=1741609800, vin=tuple(vin), vout=tuple(vout), fees=2_000, value=value)


class TestClassify:
    """Tests for classify and is_suspicious."""

    def test_classify_outgoing_with_change(self) -> None:
        tx = make_tx(
            [endpoint(WALLET, value=10 * COIN)],
            [endpoint(OTHER, value=7 * COIN), endpoint(WALLET, value=3 * COIN)],
        )

        result = classify(tx, WALLET)

        assert result == ClassifiedTransaction(
            txid="abc",
            direction=Direction.OUTGOING,
            amount=Decimal("7"),
            fee=Decimal("0.00002"),
            suspicious=False,
        )

    def test_classify_requires_txid(self) -> None:
        tx = RawTransaction(txid=None, block_time=1, vin=(), vout=(), fees=0)

        with pytest.raises(ValueError):
            classify(tx, WALLET)

    def test_large_value_is_suspicious(self) -> None:
        tx = make_tx([endpoint(OTHER, value=6000 * COIN)], [endpoint(WALLET, value=5001 * COIN)])

        assert is_suspicious(tx)

    def test_reported_value_drives_suspicion(self) -> None:
        tx = make_tx([endpoint(OTHER, value=COIN)], [endpoint(WALLET, value=COIN)], value=5000 * COIN)

        # Exactly at the threshold is not suspicious.
        assert not is_suspicious(tx)

    def test_many_outputs_is_suspicious(self) -> None:
        outputs = [endpoint(f"L{i}", value=1) for i in range(11)]

        assert is_suspicious(make_tx([endpoint(WALLET, value=11)], outputs))
        assert not is_suspicious(make_tx([endpoint(WALLET, value=10)], outputs[:10]))
