"""Time source for countdowns and cache freshness checks."""
from datetime import datetime


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch."""
    return int(moment.timestamp() * 1000)


class SystemClock:
    """Wall-clock time source."""

    def now(self) -> datetime:
        return datetime.now()

    def now_ms(self) -> int:
        return to_epoch_ms(self.now())
