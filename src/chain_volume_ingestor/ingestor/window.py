"""Calendar window the backfill is restricted to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateWindow:
    """Closed UTC interval ``[start, end]``.

    ``end`` is the last microsecond of the configured end date, so a window
    built from ``2025-03-01`` to ``2025-03-31`` covers all of March.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("window bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError("window end is before window start")

    @classmethod
    def from_dates(cls, start_date: date, end_date: date) -> DateWindow:
        start = datetime.combine(start_date, time.min, tzinfo=UTC)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC) - timedelta(microseconds=1)
        return cls(start=start, end=end)

    @property
    def start_timestamp(self) -> int:
        return int(self.start.timestamp())

    @property
    def end_timestamp(self) -> int:
        return int(self.end.timestamp())

    def contains(self, ts: int | float | datetime) -> bool:
        """Return True if a unix timestamp (seconds) or aware datetime is in the window."""
        moment = ts if isinstance(ts, datetime) else datetime.fromtimestamp(ts, tz=UTC)
        in_range = self.start <= moment <= self.end
        if not in_range:
            logger.debug(
                "Timestamp %s is outside range %s to %s",
                moment.isoformat(),
                self.start.isoformat(),
                self.end.isoformat(),
            )
        return in_range
