"""Clock — current time in the configured IANA timezone, plus display formatting."""

import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class Clock:
    """Timezone-aware clock. Falls back to UTC when the zone name is unknown."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz: tzinfo
        try:
            self.tz = ZoneInfo(tz_name)
            self.name = tz_name
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                f"Unknown timezone {tz_name!r}, falling back to UTC",
                extra={"timezone": tz_name},
            )
            self.tz = timezone.utc
            self.name = "UTC"

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def now_string(self) -> str:
        return self.now().strftime(DATETIME_FORMAT)

    def localize(self, value: datetime) -> datetime:
        """Convert *value* into this clock's zone; naive values are taken as UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz)

    def format(self, value: datetime, fmt: str = DATETIME_FORMAT) -> str:
        return self.localize(value).strftime(fmt)

    def parse(self, value: str, fmt: str = DATETIME_FORMAT) -> datetime:
        """Parse a wall-clock string as a time in this clock's zone."""
        return datetime.strptime(value, fmt).replace(tzinfo=self.tz)
