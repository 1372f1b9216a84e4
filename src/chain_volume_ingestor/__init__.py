"""Chain volume ingestor - explorer transaction backfill with point-in-time volumes."""

__version__ = "0.1.0"
