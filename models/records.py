"""
Record value types.

Records are frozen dataclasses. Engine operations return new values via
dataclasses.replace(); nothing here is mutated in place.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from models.enums import FunnelType, TicketPriority, TicketStatus
from models.errors import DegenerateIntervalError


@dataclass(frozen=True)
class Stage:
    """One funnel phase. Terminal stages carry no order."""
    id: str
    order: Optional[int]
    is_terminal: bool
    default_probability: int
    label: str = ""

    @property
    def is_won(self) -> bool:
        return self.is_terminal and self.default_probability == 100

    @property
    def is_lost(self) -> bool:
        return self.is_terminal and self.default_probability == 0


@dataclass(frozen=True)
class FunnelRecord:
    """A Lead or Deal."""
    id: str
    funnel_type: FunnelType
    stage_id: str
    probability: int
    owner_id: Optional[str] = None
    expected_close_date: Optional[date] = None
    amount: Decimal = Decimal("0")
    name: str = ""
    company: str = ""
    email: str = ""
    created_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self):
        if not isinstance(self.funnel_type, FunnelType):
            object.__setattr__(self, "funnel_type", FunnelType(self.funnel_type))
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))
        if not 0 <= self.probability <= 100:
            raise ValueError(f"probability must be 0-100, got {self.probability}")


@dataclass(frozen=True)
class Ticket:
    """A support ticket with a time-bound SLA."""
    id: str
    status: TicketStatus
    priority: TicketPriority
    created_at: datetime
    sla_deadline: datetime
    subject: str = ""
    category: str = "general"
    customer_name: str = ""
    customer_email: str = ""
    assignee_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.status, TicketStatus):
            object.__setattr__(self, "status", TicketStatus(self.status))
        if not isinstance(self.priority, TicketPriority):
            object.__setattr__(self, "priority", TicketPriority(self.priority))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))
        if self.sla_deadline <= self.created_at:
            raise DegenerateIntervalError(self.created_at, self.sla_deadline)
