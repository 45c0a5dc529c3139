"""Time source for tracking transitions and age calculation"""

from datetime import datetime, timezone


class Clock:
    """Wall clock returning naive UTC, matching how timestamps are stored"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves it forward"""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta) -> datetime:
        self.instant = self.instant + delta
        return self.instant


_system_clock = Clock()


def get_clock() -> Clock:
    """Dependency injection for the current time source"""
    return _system_clock
