"""
Custom template tags for the CRM dashboard.
"""

from django import template

from services import sla_clock
from services.stage_engine import get_stage

register = template.Library()


@register.filter
def get_item(dictionary, key):
    """
    Template filter to access dictionary items by key.
    Usage: {{ mydict|get_item:key }}
    """
    if dictionary is None:
        return None
    return dictionary.get(key, key)


@register.filter
def intcomma(value):
    """
    Format a whole amount with commas.
    Usage: {{ deal.amount|intcomma }}
    """
    try:
        return "{:,}".format(int(value))
    except (ValueError, TypeError):
        return value


@register.filter
def sla_remaining(value):
    """
    Plain label for a RemainingTime.
    Usage: {{ row.sla.remaining|sla_remaining }}  ->  "1d 3h" / "Overdue 2h 0m"
    """
    if value is None:
        return ''
    return sla_clock.format_remaining(value)


@register.filter
def stage_label(record):
    """
    Display label of a funnel record's current stage.
    Usage: {{ record|stage_label }}
    """
    if record is None:
        return ''
    return get_stage(record.funnel_type, record.stage_id).label
