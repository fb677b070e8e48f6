"""
Record Store
============
Storage contract for funnel records and tickets.

The engine never writes storage. Callers read a record, run
stage_engine.transition() on it, then hand the result to save_transition()
with the version they read. A version mismatch raises StaleRecordError
instead of silently overwriting a concurrent change.

Backends (CRM_RECORD_STORE):
    memory    In-process store seeded with demo data (default)
    postgres  db.py tables over the psycopg2 connection pool
"""

import dataclasses
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.enums import FunnelType
from models.errors import StaleRecordError
from models.records import FunnelRecord, Ticket
from services import stage_engine

logger = logging.getLogger(__name__)

STORE_ENV = "CRM_RECORD_STORE"


class MemoryRecordStore:
    """Thread-safe in-memory store. Lost on restart."""

    def __init__(self, records: Optional[List[FunnelRecord]] = None, tickets: Optional[List[Ticket]] = None):
        self._lock = threading.Lock()
        # (funnel_type, id) -> record, insertion order kept
        self._records: Dict[tuple, FunnelRecord] = {
            (r.funnel_type, r.id): r for r in (records or [])
        }
        self._tickets: Dict[str, Ticket] = {t.id: t for t in (tickets or [])}
        self._history: List[Dict[str, Any]] = []

    @classmethod
    def with_demo_data(cls) -> "MemoryRecordStore":
        from services.seed_data import demo_deals, demo_leads, demo_tickets
        return cls(records=demo_deals() + demo_leads(), tickets=demo_tickets())

    def list_funnel_records(self, funnel_type) -> List[FunnelRecord]:
        funnel = FunnelType(funnel_type)
        with self._lock:
            return [r for (f, _), r in self._records.items() if f == funnel]

    def get_funnel_record(self, funnel_type, record_id: str) -> Optional[FunnelRecord]:
        with self._lock:
            return self._records.get((FunnelType(funnel_type), record_id))

    def save_transition(
        self,
        record: FunnelRecord,
        expected_version: int,
        changed_by: Optional[str] = None,
    ) -> FunnelRecord:
        key = (record.funnel_type, record.id)
        with self._lock:
            current = self._records.get(key)
            if current is None or current.version != expected_version:
                raise StaleRecordError(
                    record.id, expected_version, current.version if current else None
                )
            stored = dataclasses.replace(
                current,
                stage_id=record.stage_id,
                probability=record.probability,
                version=current.version + 1,
            )
            self._records[key] = stored
            self._history.append({
                'funnel_type': record.funnel_type.value,
                'record_id': record.id,
                'from_stage': current.stage_id,
                'to_stage': record.stage_id,
                'is_regression': stage_engine.is_regression(
                    record.funnel_type, current.stage_id, record.stage_id
                ),
                'changed_by': changed_by,
                'changed_at': datetime.now(timezone.utc),
            })
        return stored

    def stage_history(self, funnel_type, record_id: str) -> List[Dict[str, Any]]:
        funnel = FunnelType(funnel_type).value
        with self._lock:
            return [
                {k: v for k, v in h.items() if k not in ('funnel_type', 'record_id')}
                for h in self._history
                if h['funnel_type'] == funnel and h['record_id'] == record_id
            ]

    def list_tickets(self) -> List[Ticket]:
        with self._lock:
            return list(self._tickets.values())

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        with self._lock:
            return self._tickets.get(ticket_id)


class PostgresRecordStore:
    """Store backed by db.py. Requires DATABASE_URL."""

    def __init__(self):
        import db
        self._db = db
        db.init_db()

    def list_funnel_records(self, funnel_type) -> List[FunnelRecord]:
        return self._db.get_funnel_records(FunnelType(funnel_type))

    def get_funnel_record(self, funnel_type, record_id: str) -> Optional[FunnelRecord]:
        return self._db.get_funnel_record(FunnelType(funnel_type), record_id)

    def save_transition(
        self,
        record: FunnelRecord,
        expected_version: int,
        changed_by: Optional[str] = None,
    ) -> FunnelRecord:
        current = self.get_funnel_record(record.funnel_type, record.id)
        if current is None:
            raise StaleRecordError(record.id, expected_version, None)
        return self._db.update_funnel_stage(
            record,
            expected_version,
            from_stage=current.stage_id,
            is_regression=stage_engine.is_regression(
                record.funnel_type, current.stage_id, record.stage_id
            ),
            changed_by=changed_by,
        )

    def stage_history(self, funnel_type, record_id: str) -> List[Dict[str, Any]]:
        return self._db.get_stage_history(FunnelType(funnel_type), record_id)

    def list_tickets(self) -> List[Ticket]:
        return self._db.get_tickets()

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        return self._db.get_ticket(ticket_id)


_store = None
_store_lock = threading.Lock()


def get_record_store():
    """
    Process-wide store selected by CRM_RECORD_STORE.

    Raises:
        RuntimeError: If CRM_RECORD_STORE names an unknown backend
    """
    global _store
    if _store is not None:
        return _store

    with _store_lock:
        if _store is not None:
            return _store
        backend = os.environ.get(STORE_ENV, "memory").strip().lower()
        if backend == "memory":
            _store = MemoryRecordStore.with_demo_data()
        elif backend == "postgres":
            _store = PostgresRecordStore()
        else:
            raise RuntimeError(f"{STORE_ENV} must be 'memory' or 'postgres', got {backend!r}")
        logger.info(f"Record store initialized ({backend})")
        return _store


def reset_record_store() -> None:
    """Drop the process-wide store so the next call rebuilds it."""
    global _store
    with _store_lock:
        _store = None
