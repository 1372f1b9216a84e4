"""Pricing - Point-in-time token prices for volume denomination."""

from chain_volume_ingestor.pricing.resolver import PricePair, PriceResolver, truncate_to_hour

__all__ = [
    "PricePair",
    "PriceResolver",
    "truncate_to_hour",
]
