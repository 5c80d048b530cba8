"""
Service clock defining the "service day" shared by all quota counters.

Daily counters reset lazily: a counter whose last_reset_date differs from
today reports an effective sent count of zero. That comparison is only
consistent across sender workers if every worker agrees on what "today" is,
so the date always comes from this clock, pinned to the configured
SERVICE_TIMEZONE, and is passed to the storage layer as a parameter.

Tests substitute a frozen subclass to step across midnight deterministically.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from send_governance.core.config import get_settings


class ServiceClock:
    """Wall clock pinned to a single fixed timezone."""

    def __init__(self, timezone: Optional[str] = None) -> None:
        self.timezone = ZoneInfo(timezone or get_settings().service_timezone)

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def today(self) -> date:
        return self.now().date()
