"""
PostgreSQL store tests.

The mocked tests run everywhere. The integration tests need a real
PostgreSQL DATABASE_URL and write to the CRM tables.
"""
import os
from contextlib import contextmanager

import pytest

import db
from models.enums import FunnelType
from models.errors import StaleRecordError
from services import stage_engine
from services.seed_data import demo_deals

requires_postgres = pytest.mark.skipif(
    not os.environ.get('DATABASE_URL', '').startswith(('postgres://', 'postgresql://')),
    reason="PostgreSQL DATABASE_URL not configured"
)


@contextmanager
def _fake_transaction():
    yield object()


class TestUpdateFunnelStageMocked:
    """Version check behaviour without a database."""

    def test_no_matching_row_raises_stale(self, monkeypatch):
        calls = []

        def fake_execute(sql, params=None, *, fetch="none", conn=None):
            calls.append(sql.split()[0])
            if sql.strip().startswith('UPDATE'):
                return None
            return {'version': 3}

        monkeypatch.setattr(db, 'transaction', _fake_transaction)
        monkeypatch.setattr(db, 'execute', fake_execute)

        record = stage_engine.transition(demo_deals()[2], 'CONTACTED')
        with pytest.raises(StaleRecordError) as exc:
            db.update_funnel_stage(record, 1, from_stage='NEW', is_regression=False)

        assert exc.value.actual_version == 3
        # No history row written for a rejected update
        assert 'INSERT' not in calls

    def test_missing_database_url_fails_closed(self, monkeypatch):
        monkeypatch.delenv('DATABASE_URL', raising=False)
        monkeypatch.setattr(db, '_pool', None)
        with pytest.raises(RuntimeError):
            db.get_connection()


@requires_postgres
class TestPostgresStore:

    @pytest.fixture(autouse=True)
    def seeded(self):
        db.init_db()
        db.clear_all_data()
        db.seed_demo_data()
        yield
        db.clear_all_data()

    def test_seed_round_trip(self):
        deals = db.get_funnel_records(FunnelType.DEAL)
        assert {d.id for d in deals} == {d.id for d in demo_deals()}
        assert len(db.get_tickets()) == 8
        assert db.get_ticket('t1').tags == ('export', 'csv', 'data')

    def test_update_with_current_version(self):
        record = db.get_funnel_record(FunnelType.DEAL, '3')
        moved = stage_engine.transition(record, 'CONTACTED')
        stored = db.update_funnel_stage(
            moved, record.version, from_stage=record.stage_id, is_regression=False, changed_by='jane'
        )
        assert stored.version == record.version + 1
        history = db.get_stage_history(FunnelType.DEAL, '3')
        assert [(h['from_stage'], h['to_stage']) for h in history] == [('NEW', 'CONTACTED')]

    def test_stale_version_rejected(self):
        record = db.get_funnel_record(FunnelType.DEAL, '3')
        moved = stage_engine.transition(record, 'CONTACTED')
        db.update_funnel_stage(moved, record.version, from_stage='NEW', is_regression=False)
        with pytest.raises(StaleRecordError):
            db.update_funnel_stage(moved, record.version, from_stage='NEW', is_regression=False)
