"""
Stage Engine Tests
==================
Stage table guardrails, transitions, progress and overdue rules.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from models.enums import FunnelType
from models.errors import InvalidStageError
from models.records import FunnelRecord
from services import pipeline_stages, stage_engine


def _deal(stage_id="NEW", probability=20, close=None, **kwargs):
    return FunnelRecord(
        id="d1",
        funnel_type=FunnelType.DEAL,
        stage_id=stage_id,
        probability=probability,
        expected_close_date=close,
        amount=Decimal("1000"),
        **kwargs,
    )


class TestStageTable:
    """The configured stage table is the single source of truth."""

    def test_deal_stages_in_order_with_terminals_last(self):
        ids = [s.id for s in stage_engine.list_stages(FunnelType.DEAL)]
        assert ids == ["NEW", "CONTACTED", "PROPOSAL", "NEGOTIATION", "WON", "LOST"]

    def test_lead_stages_in_order_with_terminals_last(self):
        ids = [s.id for s in stage_engine.list_stages("LEAD")]
        assert ids == ["NEW", "CONTACTED", "QUALIFIED", "CONVERTED", "LOST"]

    def test_open_orders_strictly_increasing(self):
        for funnel_type in FunnelType:
            orders = [s.order for s in stage_engine.list_stages(funnel_type) if not s.is_terminal]
            assert orders == sorted(set(orders))

    def test_exactly_one_won_and_one_lost_per_funnel(self):
        for funnel_type in FunnelType:
            stages = stage_engine.list_stages(funnel_type)
            assert sum(1 for s in stages if s.is_won) == 1
            assert sum(1 for s in stages if s.is_lost) == 1

    def test_stage_choices_are_key_label_tuples(self):
        for key, label in pipeline_stages.STAGE_CHOICES[FunnelType.DEAL]:
            assert stage_engine.get_stage(FunnelType.DEAL, key).label == label

    def test_unknown_stage_raises(self):
        with pytest.raises(InvalidStageError):
            stage_engine.get_stage(FunnelType.DEAL, "QUALIFIED")

    def test_validation_rejects_duplicate_orders(self):
        """The import-time guardrail fails closed on a broken table."""
        from models.records import Stage

        broken = dict(pipeline_stages.STAGES)
        broken[FunnelType.DEAL] = (
            Stage("A", 1, False, 10, "A"),
            Stage("B", 1, False, 20, "B"),
            Stage("WON", None, True, 100, "Won"),
            Stage("LOST", None, True, 0, "Lost"),
        )
        with pytest.raises(RuntimeError):
            pipeline_stages._validate(broken)


class TestNewRecord:

    def test_starts_at_lowest_order_with_default_probability(self):
        record = stage_engine.new_record(FunnelType.LEAD, "L9", name="Prospect")
        assert record.stage_id == "NEW"
        assert record.probability == 10
        assert record.name == "Prospect"


class TestTransition:
    """transition() returns a new record and never mutates the input."""

    def test_forward_move_resets_probability(self):
        record = _deal()
        moved = stage_engine.transition(record, "PROPOSAL")
        assert moved.stage_id == "PROPOSAL"
        assert moved.probability == 60
        assert record.stage_id == "NEW"

    def test_same_stage_is_idempotent(self):
        record = _deal("PROPOSAL", 60)
        assert stage_engine.transition(record, "PROPOSAL") == record

    def test_won_fixes_probability_at_100(self):
        assert stage_engine.transition(_deal(), "WON").probability == 100

    def test_lost_fixes_probability_at_0(self):
        assert stage_engine.transition(_deal("NEGOTIATION", 80), "LOST").probability == 0

    def test_explicit_probability_override(self):
        moved = stage_engine.transition(_deal(), "PROPOSAL", probability=55)
        assert moved.probability == 55

    def test_override_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            stage_engine.transition(_deal(), "PROPOSAL", probability=101)

    def test_override_on_terminal_rejected(self):
        with pytest.raises(ValueError):
            stage_engine.transition(_deal(), "WON", probability=90)

    def test_stage_from_other_funnel_rejected(self):
        record = _deal()
        with pytest.raises(InvalidStageError):
            stage_engine.transition(record, "CONVERTED")
        assert record.stage_id == "NEW"

    def test_regression_allowed_and_logged(self, caplog):
        record = _deal("NEGOTIATION", 80)
        with caplog.at_level("WARNING", logger="services.stage_engine"):
            moved = stage_engine.transition(record, "CONTACTED")
        assert moved.stage_id == "CONTACTED"
        assert "regression" in caplog.text.lower()

    def test_reopen_from_terminal_is_regression(self):
        assert stage_engine.is_regression(FunnelType.DEAL, "LOST", "NEW")
        assert not stage_engine.is_regression(FunnelType.DEAL, "NEW", "LOST")
        assert not stage_engine.is_regression(FunnelType.DEAL, "NEW", "PROPOSAL")


class TestProgress:

    def test_progress_monotonic_over_open_stages(self):
        values = [
            stage_engine.progress(_deal(s.id, s.default_probability))
            for s in stage_engine.list_stages(FunnelType.DEAL)
            if not s.is_terminal
        ]
        assert values == sorted(values)
        assert values[-1] == 100

    def test_open_stage_progress_is_floor_of_order_share(self):
        assert stage_engine.progress(_deal("CONTACTED", 40)) == 50
        lead = FunnelRecord(id="L", funnel_type="LEAD", stage_id="CONTACTED", probability=30)
        assert stage_engine.progress(lead) == 66

    def test_won_is_100_and_lost_is_0(self):
        assert stage_engine.progress(_deal("WON", 100)) == 100
        assert stage_engine.progress(_deal("LOST", 0)) == 0


class TestOverdue:

    NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)

    def test_open_record_past_close_date_is_overdue(self):
        assert stage_engine.is_overdue_for_stage(_deal(close=date(2026, 1, 31)), self.NOW)

    def test_close_date_today_is_not_overdue(self):
        assert not stage_engine.is_overdue_for_stage(_deal(close=date(2026, 2, 1)), self.NOW)

    def test_terminal_never_overdue(self):
        record = _deal("WON", 100, close=date(2020, 1, 1))
        assert not stage_engine.is_overdue_for_stage(record, self.NOW)

    def test_missing_close_date_never_overdue(self):
        assert not stage_engine.is_overdue_for_stage(_deal(), self.NOW)
