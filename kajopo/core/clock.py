"""Time source shared by the session, lockout and activity components."""
from datetime import datetime, timezone


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = Clock()
