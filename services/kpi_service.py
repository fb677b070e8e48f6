"""
KPI Service - Dashboard Metrics
===============================
Pipeline and support KPIs computed over record sets.

This module is the single source of truth for dashboard metrics.
Do not compute KPIs in the view layer.
"""

from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Union

from models.enums import SLA_STOPPED_STATUSES, FunnelType, TicketStatus
from models.records import FunnelRecord, Ticket
from services import sla_clock
from services.stage_engine import get_stage, is_overdue_for_stage, list_stages


def _is_open(record: FunnelRecord) -> bool:
    return not get_stage(record.funnel_type, record.stage_id).is_terminal


def _is_won(record: FunnelRecord) -> bool:
    return get_stage(record.funnel_type, record.stage_id).is_won


# =============================================================================
# PIPELINE
# =============================================================================

def pipeline_stats(records: Iterable[FunnelRecord]) -> Dict[str, Any]:
    """
    Headline pipeline numbers.

    - total_value: sum of amounts over open records
    - avg_deal_size: total_value / open count (0 when none open)
    - win_rate: won / all records, percent, one decimal
    - open_count: records not in a terminal stage
    - weighted_value: sum(amount * probability / 100) over open records
    """
    records = list(records)
    open_records = [r for r in records if _is_open(r)]
    won_count = sum(1 for r in records if _is_won(r))

    total_value = sum((r.amount for r in open_records), Decimal("0"))
    weighted_value = sum(
        (r.amount * r.probability / Decimal(100) for r in open_records),
        Decimal("0"),
    )

    return {
        'total_value': total_value,
        'avg_deal_size': (total_value / len(open_records)) if open_records else Decimal("0"),
        'win_rate': round(won_count / len(records) * 100, 1) if records else 0.0,
        'open_count': len(open_records),
        'won_count': won_count,
        'weighted_value': weighted_value.quantize(Decimal("0.01")),
    }


def stage_breakdown(
    records: Iterable[FunnelRecord],
    funnel_type: Union[FunnelType, str],
) -> List[Dict[str, Any]]:
    """
    Count and amount per stage, one row per configured stage in stage order.
    Stages with no records are included with zero values.

    Returns:
        List of dicts with 'stage', 'label', 'count', 'amount' keys
    """
    stages = list_stages(funnel_type)
    counts: Counter = Counter()
    amounts: Dict[str, Decimal] = {s.id: Decimal("0") for s in stages}

    for record in records:
        if record.funnel_type != FunnelType(funnel_type):
            continue
        counts[record.stage_id] += 1
        amounts[record.stage_id] = amounts.get(record.stage_id, Decimal("0")) + record.amount

    return [
        {
            'stage': s.id,
            'label': s.label,
            'count': counts.get(s.id, 0),
            'amount': amounts[s.id],
        }
        for s in stages
    ]


def overdue_records(records: Iterable[FunnelRecord], now) -> List[FunnelRecord]:
    """Open records past their expected close date, original order."""
    return [r for r in records if is_overdue_for_stage(r, now)]


# =============================================================================
# SUPPORT
# =============================================================================

def ticket_summary(tickets: Iterable[Ticket], now: datetime) -> Dict[str, Any]:
    """
    Support queue numbers.

    - by_status: count per TicketStatus value (all statuses present)
    - active: tickets whose SLA clock is still running
    - overdue: active tickets past their deadline
    - breached_resolved: resolved/closed tickets that finished after deadline
    """
    tickets = list(tickets)
    by_status = {status.value: 0 for status in TicketStatus}
    active = 0
    overdue = 0
    breached_resolved = 0

    for ticket in tickets:
        by_status[ticket.status.value] += 1
        at = sla_clock.ticket_clock_time(ticket, now)
        late = sla_clock.is_overdue(ticket.sla_deadline, at)
        if ticket.status in SLA_STOPPED_STATUSES:
            if late:
                breached_resolved += 1
        else:
            active += 1
            if late:
                overdue += 1

    return {
        'total': len(tickets),
        'by_status': by_status,
        'active': active,
        'overdue': overdue,
        'breached_resolved': breached_resolved,
    }
