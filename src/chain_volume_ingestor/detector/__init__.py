"""Detector - Transaction direction, amount and suspicion classification."""

from chain_volume_ingestor.detector.classifier import (
    ClassifiedTransaction,
    Direction,
    classify,
    classify_direction,
    compute_amount,
    is_suspicious,
)

__all__ = [
    "ClassifiedTransaction",
    "Direction",
    "classify",
    "classify_direction",
    "compute_amount",
    "is_suspicious",
]
