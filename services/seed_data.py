"""
Demo records for the in-memory store and for seeding an empty database.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List

from models.enums import FunnelType, TicketPriority, TicketStatus
from models.records import FunnelRecord, Ticket

# owner_id -> display name
OWNERS: Dict[str, str] = {
    "1": "Jane Smith",
    "2": "John Doe",
    "3": "Sarah Connor",
}


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _deal(record_id, name, company, amount, stage, close, owner, probability, email=""):
    return FunnelRecord(
        id=record_id,
        funnel_type=FunnelType.DEAL,
        stage_id=stage,
        probability=probability,
        owner_id=owner,
        expected_close_date=close,
        amount=Decimal(amount),
        name=name,
        company=company,
        email=email,
        created_at=_utc(2025, 12, 1, 9, 0),
    )


def _lead(record_id, name, company, email, amount, stage, close, owner, probability, created):
    return FunnelRecord(
        id=record_id,
        funnel_type=FunnelType.LEAD,
        stage_id=stage,
        probability=probability,
        owner_id=owner,
        expected_close_date=close,
        amount=Decimal(amount),
        name=name,
        company=company,
        email=email,
        created_at=created,
    )


def demo_deals() -> List[FunnelRecord]:
    return [
        _deal("1", "Enterprise License 2026", "TechCorp Inc.", "125000", "PROPOSAL", date(2026, 2, 15), "1", 60),
        _deal("2", "Support Contract Extension", "TechCorp Inc.", "45000", "NEGOTIATION", date(2026, 1, 30), "1", 80),
        _deal("3", "Custom Integration Project", "MegaCorp Ltd.", "85000", "NEW", date(2026, 3, 20), "2", 30),
        _deal("4", "Platform Migration", "FinanceHub", "250000", "CONTACTED", date(2026, 4, 10), "2", 45),
        _deal("5", "Annual Subscription", "RetailMax", "32000", "WON", date(2026, 1, 5), "3", 100),
        _deal("6", "Consulting Package", "HealthCare+", "175000", "PROPOSAL", date(2026, 2, 28), "3", 55),
        _deal("7", "Training Workshop", "StartupXYZ", "15000", "LOST", date(2025, 12, 20), "1", 0),
        _deal("8", "API Integration", "MegaCorp Ltd.", "68000", "NEGOTIATION", date(2026, 2, 5), "2", 70),
    ]


def demo_leads() -> List[FunnelRecord]:
    return [
        _lead("L1", "Nguyen Minh Tuan", "Manabie Vietnam", "tuan.nguyen@manabie.com",
              "125000", "QUALIFIED", date(2026, 2, 15), "1", 50, _utc(2025, 12, 15)),
        _lead("L2", "Tran Thi Mai", "FitX Vietnam", "mai.tran@fitx.vn",
              "45000", "CONTACTED", date(2026, 1, 25), "2", 30, _utc(2025, 11, 20)),
        _lead("L3", "Le Hoang Anh", "Timo Digital Bank", "anh.le@timo.vn",
              "250000", "CONVERTED", date(2026, 1, 12), "1", 100, _utc(2025, 6, 15)),
        _lead("L4", "Michael Chen", "MegaCorp Ltd.", "m.chen@megacorp.com",
              "85000", "NEW", date(2026, 3, 30), "3", 10, _utc(2026, 1, 5)),
        _lead("L5", "David Miller", "LogiTech Solutions", "d.miller@logitech-solutions.com",
              "68000", "LOST", date(2025, 12, 31), "3", 0, _utc(2025, 9, 20)),
        _lead("L6", "Lisa Thompson", "HealthCare+", "lisa.t@healthcare-plus.org",
              "175000", "QUALIFIED", date(2026, 1, 5), "2", 55, _utc(2025, 10, 15)),
    ]


def demo_tickets() -> List[Ticket]:
    return [
        Ticket(
            id="t1", status=TicketStatus.OPEN, priority=TicketPriority.HIGH,
            created_at=_utc(2026, 1, 12, 9, 30), sla_deadline=_utc(2026, 1, 14, 9, 30),
            subject="Unable to export customer data to CSV", category="technical",
            customer_name="John Anderson", customer_email="john.anderson@techcorp.com",
            assignee_id="3", tags=("export", "csv", "data"),
        ),
        Ticket(
            id="t2", status=TicketStatus.PENDING, priority=TicketPriority.MEDIUM,
            created_at=_utc(2026, 1, 11, 14, 20), sla_deadline=_utc(2026, 1, 15, 14, 20),
            subject="Billing discrepancy on January invoice", category="billing",
            customer_name="Emily Davis", customer_email="emily.davis@financehub.com",
            assignee_id="2", tags=("billing", "invoice"),
        ),
        Ticket(
            id="t3", status=TicketStatus.NEW, priority=TicketPriority.LOW,
            created_at=_utc(2026, 1, 13, 8, 15), sla_deadline=_utc(2026, 1, 20, 8, 15),
            subject="Feature Request: Bulk email scheduling", category="feature-request",
            customer_name="Michael Chen", customer_email="m.chen@megacorp.com",
            tags=("email", "feature"),
        ),
        Ticket(
            id="t4", status=TicketStatus.OPEN, priority=TicketPriority.URGENT,
            created_at=_utc(2026, 1, 13, 12, 0), sla_deadline=_utc(2026, 1, 13, 16, 0),
            subject="Dashboard not loading - Error 500", category="bug",
            customer_name="Sarah Williams", customer_email="sarah.w@startupxyz.io",
            assignee_id="3", tags=("dashboard", "error"),
        ),
        Ticket(
            id="t5", status=TicketStatus.RESOLVED, priority=TicketPriority.MEDIUM,
            created_at=_utc(2026, 1, 10, 10, 0), sla_deadline=_utc(2026, 1, 14, 10, 0),
            resolved_at=_utc(2026, 1, 12, 15, 20),
            subject="How to integrate with Salesforce?", category="general",
            customer_name="Robert Johnson", customer_email="r.johnson@retailmax.com",
            assignee_id="1", tags=("integration",),
        ),
        Ticket(
            id="t6", status=TicketStatus.OPEN, priority=TicketPriority.HIGH,
            created_at=_utc(2026, 1, 12, 16, 45), sla_deadline=_utc(2026, 1, 14, 16, 45),
            subject="API rate limit too restrictive", category="technical",
            customer_name="Lisa Thompson", customer_email="lisa.t@healthcare-plus.org",
            assignee_id="2", tags=("api",),
        ),
        Ticket(
            id="t7", status=TicketStatus.PENDING, priority=TicketPriority.LOW,
            created_at=_utc(2026, 1, 11, 11, 30), sla_deadline=_utc(2026, 1, 18, 11, 30),
            subject="Request for training session", category="general",
            customer_name="David Miller", customer_email="d.miller@logitech-solutions.com",
            assignee_id="1", tags=("training",),
        ),
        Ticket(
            id="t8", status=TicketStatus.NEW, priority=TicketPriority.HIGH,
            created_at=_utc(2026, 1, 13, 13, 20), sla_deadline=_utc(2026, 1, 14, 13, 20),
            subject="Mobile app crashes on iOS 17", category="bug",
            customer_name="Jennifer Brown", customer_email="j.brown@edulearn.edu",
            tags=("mobile", "ios"),
        ),
    ]
