import calendar
from datetime import datetime
from typing import Iterable

import structlog

from tokenblocks.models import DailyUsage, MonthlyUsage, UsageRecord

logger = structlog.get_logger()


def aggregate_daily(records: "Iterable[UsageRecord]") -> "list[DailyUsage]":
    """
    groups records by the calendar day of their timestamp, in the
    timestamp's own timezone. Returns days sorted by date; days
    without records are left out.
    """
    by_date: "dict[str, DailyUsage]" = {}

    for record in sorted(records, key=lambda r: r.timestamp):
        date = record.timestamp.date().isoformat()
        day = by_date.get(date)
        if day is None:
            day = DailyUsage(date=date)
            by_date[date] = day

        day.add(record)

    days = [by_date[date] for date in sorted(by_date)]
    logger.debug("days_aggregated", day_count=len(days))
    return days


def aggregate_monthly(records: "Iterable[UsageRecord]") -> "list[MonthlyUsage]":
    """
    rolls daily totals up into calendar months, sorted by month.
    """
    by_month: "dict[str, MonthlyUsage]" = {}

    for day in aggregate_daily(records):
        # YYYY-MM-DD -> YYYY-MM
        month = day.date[:7]
        if month not in by_month:
            by_month[month] = MonthlyUsage(month=month)

        by_month[month].add_day(day)

    return [by_month[month] for month in sorted(by_month)]


def months_before(moment: "datetime", months: "int") -> "datetime":
    """
    steps back whole calendar months, clamping the day to the end
    of a shorter month (e.g. May 31 minus 3 months is Feb 28).
    """
    year, month_index = divmod(moment.year * 12 + moment.month - 1 - months, 12)
    month = month_index + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
