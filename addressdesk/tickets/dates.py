"""Business-day arithmetic used for due dates and priority tiers.

Business days are Monday to Friday; there is no holiday calendar.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from .state import TicketPriority

_SATURDAY = 5


def is_business_day(value: date) -> bool:
    return value.weekday() < _SATURDAY


def add_business_days(value: datetime, days: int) -> datetime:
    """Return ``value`` advanced by ``days`` business days.

    Weekend days are skipped entirely and the time of day is preserved.
    """

    result = value
    added = 0
    while added < days:
        result = result + timedelta(days=1)
        if is_business_day(result):
            added += 1
    return result


def _calendar_date(value: date | datetime, reference: date | datetime) -> date:
    if isinstance(value, datetime):
        if (
            isinstance(reference, datetime)
            and value.tzinfo is not None
            and reference.tzinfo is not None
        ):
            value = value.astimezone(reference.tzinfo)
        return value.date()
    return value


def business_days_between(start: date | datetime, end: date | datetime) -> int:
    """Count business days from ``start`` to ``end`` inclusive, signed.

    Both bounds are reduced to calendar dates (in ``start``'s timezone when
    both are aware). When ``end`` precedes ``start`` the result is the
    negated count of the reversed range, so overdue tickets get a negative
    number.
    """

    first = _calendar_date(start, start)
    last = _calendar_date(end, start)
    if last < first:
        return -business_days_between(last, first)

    full_weeks, remainder = divmod((last - first).days + 1, 7)
    count = full_weeks * 5
    for offset in range(remainder):
        if is_business_day(first + timedelta(days=offset)):
            count += 1
    return count


def business_days_remaining(now: date | datetime, due_date: date | datetime) -> int:
    """Business days left before ``due_date``; never positive once the due instant is reached."""

    if isinstance(now, datetime) and isinstance(due_date, datetime) and due_date <= now:
        return min(0, business_days_between(now, due_date))
    return business_days_between(now, due_date)


def priority_from_due_date(due_date: date | datetime, now: date | datetime) -> TicketPriority:
    """Map business days remaining until ``due_date`` to a priority tier."""

    remaining = business_days_remaining(now, due_date)
    if remaining <= 0:
        return TicketPriority.CRITICAL
    if remaining == 1:
        return TicketPriority.HIGH
    if remaining <= 3:
        return TicketPriority.MEDIUM
    return TicketPriority.LOW
