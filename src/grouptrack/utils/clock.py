"""Clock abstraction pinned to a reference time zone."""

from datetime import date, datetime, tzinfo

from dateutil import tz

DEFAULT_TIMEZONE = "Asia/Jerusalem"


def resolve_timezone(name: str) -> tzinfo:
    """Resolve an IANA time zone name.

    Raises:
        ValueError: If the name is unknown
    """
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown time zone: '{name}'")
    return zone


class Clock:
    """Source of "now" in the reference time zone.

    Day and hour decisions are made in this zone regardless of the local
    zone of the machine running the process.
    """

    def __init__(self, timezone: tzinfo | str = DEFAULT_TIMEZONE):
        self.timezone = resolve_timezone(timezone) if isinstance(timezone, str) else timezone

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime, timezone: tzinfo | str = DEFAULT_TIMEZONE):
        super().__init__(timezone)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.timezone)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant.astimezone(self.timezone)

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.timezone)
        self.instant = instant

    def advance(self, delta) -> None:
        self.instant = self.instant + delta
