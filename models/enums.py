"""
Controlled vocabulary for the CRM funnel and support engine.
Locked values for dropdowns, URL facets and validation. No emojis.
"""

from enum import Enum


class FunnelType(str, Enum):
    """Entities that move through ordered pipeline stages."""
    LEAD = "LEAD"
    DEAL = "DEAL"

    @classmethod
    def choices(cls) -> list:
        return [e.value for e in cls]


class Role(str, Enum):
    """User roles. Each maps to a static visibility policy."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SALE = "SALE"
    SUPPORT = "SUPPORT"

    @classmethod
    def choices(cls) -> list:
        return [e.value for e in cls]

    @classmethod
    def display_labels(cls) -> dict:
        return {
            cls.ADMIN.value: "Administrator",
            cls.MANAGER.value: "Sales Manager",
            cls.SALE.value: "Sales",
            cls.SUPPORT.value: "Support Agent",
        }


class TicketStatus(str, Enum):
    """Support ticket status. Enumerated only, not stage-ordered."""
    NEW = "NEW"
    OPEN = "OPEN"
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @classmethod
    def choices(cls) -> list:
        return [e.value for e in cls]

    @classmethod
    def display_labels(cls) -> dict:
        return {
            cls.NEW.value: "New",
            cls.OPEN.value: "Open",
            cls.PENDING.value: "Pending",
            cls.RESOLVED.value: "Resolved",
            cls.CLOSED.value: "Closed",
        }


class TicketPriority(str, Enum):
    """Support ticket priority."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @classmethod
    def choices(cls) -> list:
        return [e.value for e in cls]


# Statuses after which the SLA clock stops
SLA_STOPPED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})
