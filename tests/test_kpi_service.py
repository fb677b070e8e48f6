"""
KPI Service Tests
=================
Dashboard numbers over the demo data set.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

from models.enums import FunnelType
from services import kpi_service
from services.seed_data import demo_deals, demo_leads, demo_tickets


class TestPipelineStats:

    def test_demo_deal_stats(self):
        stats = kpi_service.pipeline_stats(demo_deals())
        assert stats['open_count'] == 6
        assert stats['won_count'] == 1
        assert stats['total_value'] == Decimal("748000")
        assert stats['win_rate'] == 12.5
        assert stats['weighted_value'] == Decimal("392850.00")

    def test_empty_set(self):
        stats = kpi_service.pipeline_stats([])
        assert stats['open_count'] == 0
        assert stats['avg_deal_size'] == Decimal("0")
        assert stats['win_rate'] == 0.0


class TestStageBreakdown:

    def test_one_row_per_stage_including_empty(self):
        rows = kpi_service.stage_breakdown(demo_deals(), FunnelType.DEAL)
        counts = {r['stage']: r['count'] for r in rows}
        assert [r['stage'] for r in rows] == ["NEW", "CONTACTED", "PROPOSAL", "NEGOTIATION", "WON", "LOST"]
        assert counts == {"NEW": 1, "CONTACTED": 1, "PROPOSAL": 2, "NEGOTIATION": 2, "WON": 1, "LOST": 1}

    def test_other_funnel_records_ignored(self):
        rows = kpi_service.stage_breakdown(demo_deals() + demo_leads(), FunnelType.LEAD)
        assert sum(r['count'] for r in rows) == len(demo_leads())


class TestOverdueRecords:

    def test_open_deals_past_close_date(self):
        overdue = kpi_service.overdue_records(demo_deals(), date(2026, 2, 1))
        # Deal 5 (won) and 7 (lost) are past their dates but terminal
        assert [r.id for r in overdue] == ["2"]


class TestTicketSummary:

    NOW = datetime(2026, 1, 14, 12, 0, tzinfo=timezone.utc)

    def test_demo_ticket_summary(self):
        summary = kpi_service.ticket_summary(demo_tickets(), self.NOW)
        assert summary['total'] == 8
        assert summary['by_status'] == {'NEW': 2, 'OPEN': 3, 'PENDING': 2, 'RESOLVED': 1, 'CLOSED': 0}
        assert summary['active'] == 7
        # t1 (deadline Jan 14 09:30), t4 (Jan 13 16:00), t8 (Jan 14 13:20 not yet)
        assert summary['overdue'] == 2
        assert summary['breached_resolved'] == 0
