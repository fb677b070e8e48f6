"""
Stage Engine
============
Funnel stage rules for Leads and Deals: stage listing, transitions,
display progress and close-date overdue checks.

Pure functions. Nothing here reads or writes storage; transition() returns a
new record and persistence is the caller's job (see services.record_store).
"""

import dataclasses
import logging
from datetime import date, datetime
from typing import List, Optional, Union

from models.enums import FunnelType
from models.errors import InvalidStageError
from models.records import FunnelRecord, Stage
from services.pipeline_stages import STAGES, STAGE_INDEX

logger = logging.getLogger(__name__)


def _funnel(funnel_type: Union[FunnelType, str]) -> FunnelType:
    # Raises ValueError for anything outside LEAD/DEAL
    return funnel_type if isinstance(funnel_type, FunnelType) else FunnelType(funnel_type)


def list_stages(funnel_type: Union[FunnelType, str]) -> List[Stage]:
    """Stages for a funnel: open stages by order, then terminal stages."""
    return list(STAGES[_funnel(funnel_type)])


def get_stage(funnel_type: Union[FunnelType, str], stage_id: str) -> Stage:
    """
    Look up one stage.

    Raises:
        InvalidStageError: If stage_id is not in the funnel's stage set
    """
    funnel = _funnel(funnel_type)
    stage = STAGE_INDEX.get((funnel, stage_id))
    if stage is None:
        raise InvalidStageError(funnel.value, stage_id)
    return stage


def first_stage(funnel_type: Union[FunnelType, str]) -> Stage:
    """The order == 1 stage new records start in."""
    return next(s for s in STAGES[_funnel(funnel_type)] if s.order == 1)


def highest_order(funnel_type: Union[FunnelType, str]) -> int:
    return max(s.order for s in STAGES[_funnel(funnel_type)] if not s.is_terminal)


def new_record(funnel_type: Union[FunnelType, str], record_id: str, **fields) -> FunnelRecord:
    """Create a record in the first stage with that stage's default probability."""
    start = first_stage(funnel_type)
    return FunnelRecord(
        id=record_id,
        funnel_type=_funnel(funnel_type),
        stage_id=start.id,
        probability=start.default_probability,
        **fields,
    )


def transition(
    record: FunnelRecord,
    target_stage_id: str,
    probability: Optional[int] = None,
) -> FunnelRecord:
    """
    Move a record to another stage of its funnel.

    Any direction is allowed. Probability resets to the target stage's
    default unless an explicit override is given.

    Args:
        record: Current record value
        target_stage_id: Stage to move to
        probability: Optional override (0-100). Not allowed for terminal
            stages, whose probability is fixed.

    Returns:
        New FunnelRecord; the input is left untouched

    Raises:
        InvalidStageError: If the target is not a stage of this funnel
        ValueError: If the override is out of range or targets a terminal stage
    """
    target = get_stage(record.funnel_type, target_stage_id)

    if probability is None:
        new_probability = target.default_probability
    else:
        if target.is_terminal and probability != target.default_probability:
            raise ValueError(
                f"Probability is fixed at {target.default_probability} for terminal stage {target.id}"
            )
        if not 0 <= probability <= 100:
            raise ValueError(f"probability must be 0-100, got {probability}")
        new_probability = probability

    if is_regression(record.funnel_type, record.stage_id, target.id):
        logger.warning(
            f"Stage regression on {record.funnel_type.value} {record.id}: "
            f"{record.stage_id} -> {target.id}"
        )
    else:
        logger.info(
            f"Stage transition on {record.funnel_type.value} {record.id}: "
            f"{record.stage_id} -> {target.id}"
        )

    return dataclasses.replace(record, stage_id=target.id, probability=new_probability)


def is_regression(funnel_type: Union[FunnelType, str], from_stage_id: str, to_stage_id: str) -> bool:
    """
    True when a move goes backwards: to a lower-ordered stage, or out of a
    terminal stage back into the open funnel. Informational only.
    """
    source = STAGE_INDEX.get((_funnel(funnel_type), from_stage_id))
    target = get_stage(funnel_type, to_stage_id)
    if source is None or target.is_terminal:
        return False
    if source.is_terminal:
        return True
    return target.order < source.order


def progress(record: FunnelRecord) -> int:
    """
    Display progress 0-100 for the record's stage.

    Won stage is 100 and lost stage is 0 regardless of order. Open stages are
    floor(order / highest open order * 100). Not a probability.
    """
    stage = get_stage(record.funnel_type, record.stage_id)
    if stage.is_terminal:
        return 100 if stage.is_won else 0
    return (stage.order * 100) // highest_order(record.funnel_type)


def is_overdue_for_stage(record: FunnelRecord, now: Union[date, datetime]) -> bool:
    """
    True when an open record's expected close date is strictly before now.

    Terminal records and records without a close date are never overdue.
    A calendar close date is compared against now's date.
    """
    stage = get_stage(record.funnel_type, record.stage_id)
    if stage.is_terminal or record.expected_close_date is None:
        return False

    close = record.expected_close_date
    if isinstance(now, datetime) and not isinstance(close, datetime):
        now = now.date()
    elif isinstance(close, datetime) and not isinstance(now, datetime):
        close = close.date()
    return close < now
