"""Injectable source of "now" for every scheduling decision.

All scheduling math happens on naive local wall-clock datetimes in the
configured timezone, which is also how instants are persisted.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from mentorloop.config import get_settings


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current local wall-clock time (tz-naive)."""
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def __init__(self, timezone: str | None = None) -> None:
        self._tz = ZoneInfo(timezone or get_settings().timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz).replace(tzinfo=None, microsecond=0)


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; tests move it explicitly."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = instant

    def advance(self, **kwargs: float) -> None:
        self._instant = self._instant + timedelta(**kwargs)


def to_local(instant: datetime, timezone: str | None = None) -> datetime:
    """Naive local wall-clock form of ``instant``; naive input is already local."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(ZoneInfo(timezone or get_settings().timezone)).replace(tzinfo=None)


def get_clock() -> Clock:
    return SystemClock()
