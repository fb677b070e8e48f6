"""
SLA Clock
=========
Read-only time calculations for support ticket SLAs.

All functions take "now" explicitly. Nothing here mutates a ticket.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, NamedTuple, Union

from models.enums import SLA_STOPPED_STATUSES, TicketPriority
from models.errors import DegenerateIntervalError
from models.records import Ticket

# Default resolution window per priority
SLA_HOURS_BY_PRIORITY = {
    TicketPriority.URGENT: 4,
    TicketPriority.HIGH: 24,
    TicketPriority.MEDIUM: 48,
    TicketPriority.LOW: 72,
}


class RemainingTime(NamedTuple):
    """Time to (or past) a deadline, broken down for display."""
    overdue: bool
    days: int
    hours: int
    minutes: int


def remaining(deadline: datetime, now: datetime) -> timedelta:
    """deadline - now. Negative once the deadline has passed."""
    return deadline - now


def is_overdue(deadline: datetime, now: datetime) -> bool:
    """Strictly past the deadline. now == deadline is not overdue."""
    return remaining(deadline, now) < timedelta(0)


def progress_ratio(created_at: datetime, deadline: datetime, now: datetime) -> float:
    """
    Share of the SLA window used, clamped to [0, 1].

    Raises:
        DegenerateIntervalError: If deadline <= created_at
    """
    total = deadline - created_at
    if total <= timedelta(0):
        raise DegenerateIntervalError(created_at, deadline)
    ratio = (now - created_at) / total
    return min(max(ratio, 0.0), 1.0)


def humanize_remaining(deadline: datetime, now: datetime) -> RemainingTime:
    """
    Break |deadline - now| into display units.

    A day or more: days + hours. Under a day: hours + minutes.
    """
    delta = remaining(deadline, now)
    overdue = delta < timedelta(0)
    total_minutes = int(abs(delta).total_seconds() // 60)
    total_hours, minutes = divmod(total_minutes, 60)

    if total_hours >= 24:
        days, hours = divmod(total_hours, 24)
        return RemainingTime(overdue=overdue, days=days, hours=hours, minutes=0)
    return RemainingTime(overdue=overdue, days=0, hours=total_hours, minutes=minutes)


def default_deadline(created_at: datetime, priority: Union[TicketPriority, str]) -> datetime:
    """SLA deadline for a new ticket of the given priority."""
    hours = SLA_HOURS_BY_PRIORITY[TicketPriority(priority)]
    return created_at + timedelta(hours=hours)


def ticket_clock_time(ticket: Ticket, now: datetime) -> datetime:
    """Effective "now" for a ticket: the clock stops once it is resolved."""
    if ticket.status in SLA_STOPPED_STATUSES and ticket.resolved_at is not None:
        return ticket.resolved_at
    return now


def ticket_sla(ticket: Ticket, now: datetime) -> Dict[str, Any]:
    """SLA status for one ticket, for list and detail views."""
    at = ticket_clock_time(ticket, now)
    ratio = progress_ratio(ticket.created_at, ticket.sla_deadline, at)
    return {
        'overdue': is_overdue(ticket.sla_deadline, at),
        'progress_pct': round(ratio * 100, 1),
        'remaining': humanize_remaining(ticket.sla_deadline, at),
    }


def format_remaining(value: RemainingTime) -> str:
    """
    Plain label for a RemainingTime.

    Example:
        RemainingTime(False, 1, 3, 0) -> "1d 3h"
        RemainingTime(True, 0, 2, 0)  -> "Overdue 2h 0m"
    """
    if value.days:
        text = f"{value.days}d {value.hours}h"
    else:
        text = f"{value.hours}h {value.minutes}m"
    return f"Overdue {text}" if value.overdue else text
