"""Schedule arithmetic for report frequencies."""

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from churn_report.store.config_store import FREQUENCIES, WorkflowConfigStore

logger = logging.getLogger(__name__)


def _add_month(dt: datetime) -> datetime:
    """Same day next month, clamped to the month's last day (Jan 31 -> Feb 28/29)."""
    year, month = (dt.year + 1, 1) if dt.month == 12 else (dt.year, dt.month + 1)
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_run_at(frequency: str, from_time: Optional[datetime] = None) -> datetime:
    """daily: +1 day, weekly: +7 days, monthly: +1 calendar month."""
    base = from_time or datetime.now(timezone.utc)
    if frequency == "daily":
        return base + timedelta(days=1)
    if frequency == "weekly":
        return base + timedelta(days=7)
    if frequency == "monthly":
        return _add_month(base)
    raise ValueError(f"frequency must be one of {FREQUENCIES}, got {frequency!r}")


def advance_schedule(config_store: WorkflowConfigStore, user_id: str, at: datetime) -> Optional[datetime]:
    """
    Record a finished run at `at` and move the user's next run forward by
    their frequency. Returns the new next_run_at (None when the user has no config).
    """
    config = config_store.get_config(user_id)
    if config is None:
        logger.warning("No workflow config for user %s; schedule not advanced", user_id)
        return None
    upcoming = next_run_at(config.frequency, at)
    config_store.advance_next_run(user_id, upcoming, last_run_at=at)
    logger.debug("User %s next run at %s", user_id, upcoming.isoformat())
    return upcoming
