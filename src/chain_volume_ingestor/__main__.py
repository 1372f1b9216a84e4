"""Command line entry point: ``python -m chain_volume_ingestor``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date

from pydantic import ValidationError as SettingsValidationError

from chain_volume_ingestor.config import Settings, get_settings
from chain_volume_ingestor.outcome import Degraded, Fatal
from chain_volume_ingestor.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chain-volume-ingestor",
        description="Backfill wallet transactions from a Blockbook explorer for a date window.",
    )
    parser.add_argument("--start-date", type=date.fromisoformat, help="Override INGEST_START_DATE (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=date.fromisoformat, help="Override INGEST_END_DATE (YYYY-MM-DD)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL",
    )
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with command line overrides applied."""
    ingestion_updates = {}
    if args.start_date is not None:
        ingestion_updates["start_date"] = args.start_date
    if args.end_date is not None:
        ingestion_updates["end_date"] = args.end_date

    updates: dict[str, object] = {}
    if ingestion_updates:
        ingestion = settings.ingestion.model_copy(update=ingestion_updates)
        if ingestion.end_date < ingestion.start_date:
            raise ValueError("end date must not be before start date")
        updates["ingestion"] = ingestion
    if args.log_level is not None:
        updates["log_level"] = args.log_level
    return settings.model_copy(update=updates) if updates else settings


async def run(settings: Settings) -> int:
    pipeline = IngestionPipeline(settings)
    outcome = await pipeline.run()
    if isinstance(outcome, Fatal):
        logger.error("Ingestion failed", exc_info=outcome.cause)
        return 1
    if isinstance(outcome, Degraded):
        logger.warning("Ingestion completed with degraded results: %s", outcome.cause)
    else:
        logger.info("Ingestion completed successfully")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = apply_overrides(get_settings(), args)
    except (SettingsValidationError, ValueError) as e:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.error("Invalid configuration: %s", e)
        return 1

    logging.basicConfig(level=settings.get_logging_level(), format=LOG_FORMAT)
    logger.info("Configuration: %s", settings.redacted_summary())

    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
