"""
Date arithmetic for recurring schedules and budget periods
"""
import logging
from datetime import datetime, timedelta
from typing import Tuple

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

FREQUENCIES = ('daily', 'weekly', 'biweekly', 'monthly', 'yearly')
PERIODS = ('weekly', 'monthly', 'yearly')

_STEPS = {
    'daily': relativedelta(days=1),
    'weekly': relativedelta(weeks=1),
    'biweekly': relativedelta(weeks=2),
    'monthly': relativedelta(months=1),
    'yearly': relativedelta(years=1),
}


def advance(date: datetime, frequency: str) -> datetime:
    """
    Return the occurrence following `date`.

    Month and year steps keep the day of month, clamped to the length of the
    target month (Jan 31 + 1 month = Feb 28/29). Unknown frequencies step monthly.
    """
    step = _STEPS.get(frequency)
    if step is None:
        logger.warning(f"Unknown frequency '{frequency}', stepping monthly")
        step = _STEPS['monthly']
    return date + step


def period_window(period: str, now: datetime) -> Tuple[datetime, datetime]:
    """
    Return the inclusive (start, end) window of the current budget period.

    Weeks start on Sunday at midnight; the window always ends at `now`.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == 'weekly':
        # weekday(): Monday=0 ... Sunday=6
        start = midnight - timedelta(days=(now.weekday() + 1) % 7)
    elif period == 'yearly':
        start = midnight.replace(month=1, day=1)
    else:
        if period != 'monthly':
            logger.warning(f"Unknown budget period '{period}', using monthly window")
        start = midnight.replace(day=1)

    return start, now
