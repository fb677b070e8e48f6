"""
Pipeline Stage Table
====================
Single source of truth for funnel stage configuration.
Imported by the stage engine, dashboard KPIs and the pipeline board.

This is configuration data, NOT transition logic.
Rows: (funnel_type, stage_id, order, is_terminal, default_probability, label)
Terminal stages have no order and are listed in their display position.
"""

from typing import Dict, List, Tuple

from models.enums import FunnelType
from models.records import Stage

STAGE_TABLE = [
    (FunnelType.DEAL, "NEW", 1, False, 20, "New"),
    (FunnelType.DEAL, "CONTACTED", 2, False, 40, "Contacted"),
    (FunnelType.DEAL, "PROPOSAL", 3, False, 60, "Proposal"),
    (FunnelType.DEAL, "NEGOTIATION", 4, False, 80, "Negotiation"),
    (FunnelType.DEAL, "WON", None, True, 100, "Won"),
    (FunnelType.DEAL, "LOST", None, True, 0, "Lost"),

    (FunnelType.LEAD, "NEW", 1, False, 10, "New"),
    (FunnelType.LEAD, "CONTACTED", 2, False, 30, "Contacted"),
    (FunnelType.LEAD, "QUALIFIED", 3, False, 50, "Qualified"),
    (FunnelType.LEAD, "CONVERTED", None, True, 100, "Converted"),
    (FunnelType.LEAD, "LOST", None, True, 0, "Lost"),
]


def _build_stages() -> Dict[FunnelType, Tuple[Stage, ...]]:
    """Group table rows per funnel: ordered stages first, terminals after."""
    grouped: Dict[FunnelType, List[Stage]] = {}
    terminals: Dict[FunnelType, List[Stage]] = {}
    for funnel_type, stage_id, order, is_terminal, probability, label in STAGE_TABLE:
        stage = Stage(
            id=stage_id,
            order=order,
            is_terminal=is_terminal,
            default_probability=probability,
            label=label,
        )
        target = terminals if is_terminal else grouped
        target.setdefault(funnel_type, []).append(stage)

    result = {}
    for funnel_type in FunnelType:
        ordered = sorted(grouped.get(funnel_type, []), key=lambda s: s.order)
        result[funnel_type] = tuple(ordered + terminals.get(funnel_type, []))
    return result


def _validate(stages: Dict[FunnelType, Tuple[Stage, ...]]) -> None:
    """
    Guardrails on the stage table. Fails closed at import.

    Raises:
        RuntimeError: If any funnel violates the stage invariants
    """
    for funnel_type, funnel in stages.items():
        ids = [s.id for s in funnel]
        if len(ids) != len(set(ids)):
            raise RuntimeError(f"{funnel_type.value}: duplicate stage ids {ids}")

        ordered = [s for s in funnel if not s.is_terminal]
        if not ordered:
            raise RuntimeError(f"{funnel_type.value}: no open stages configured")
        orders = [s.order for s in ordered]
        if orders.count(1) != 1:
            raise RuntimeError(f"{funnel_type.value}: exactly one stage must have order 1")
        if any(b <= a for a, b in zip(orders, orders[1:])):
            raise RuntimeError(f"{funnel_type.value}: stage order must strictly increase")

        for stage in funnel:
            if not 0 <= stage.default_probability <= 100:
                raise RuntimeError(f"{funnel_type.value}.{stage.id}: probability out of range")
            if stage.is_terminal:
                if stage.order is not None:
                    raise RuntimeError(f"{funnel_type.value}.{stage.id}: terminal stage has an order")
                if stage.default_probability not in (0, 100):
                    raise RuntimeError(
                        f"{funnel_type.value}.{stage.id}: terminal probability must be 0 or 100"
                    )

        terminal_probabilities = sorted(s.default_probability for s in funnel if s.is_terminal)
        if terminal_probabilities != [0, 100]:
            raise RuntimeError(f"{funnel_type.value}: needs one won and one lost terminal stage")


STAGES = _build_stages()
_validate(STAGES)

# (funnel_type, stage_id) -> Stage
STAGE_INDEX = {
    (funnel_type, stage.id): stage
    for funnel_type, funnel in STAGES.items()
    for stage in funnel
}

# funnel_type -> [(key, label)] for dropdowns and facets
STAGE_CHOICES = {
    funnel_type: [(s.id, s.label) for s in funnel]
    for funnel_type, funnel in STAGES.items()
}
