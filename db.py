"""
Database module for the CRM funnel engine.
Uses PostgreSQL for funnel records, tickets and stage history.

The funnel/SLA core never touches this module directly. Views reach it
through services.record_store when CRM_RECORD_STORE=postgres.

PRODUCTION: Requires DATABASE_URL environment variable.
"""

import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from models.enums import FunnelType
from models.errors import StaleRecordError
from models.records import FunnelRecord, Ticket

_logger = logging.getLogger(__name__)

# =============================================================================
# CONNECTION POOL (lazy-initialized singleton)
# =============================================================================
_pool: Optional[ThreadedConnectionPool] = None
_pool_lock = threading.Lock()
_init_db_done = False
_init_db_lock = threading.Lock()

SLOW_QUERY_MS = 100


def _get_pool() -> ThreadedConnectionPool:
    """
    Lazy-initialize and return the connection pool.
    Called on first DB access, not on import.
    """
    global _pool
    if _pool is not None:
        return _pool

    with _pool_lock:
        if _pool is not None:
            return _pool

        url = os.environ.get("DATABASE_URL")
        if not url:
            raise RuntimeError("DATABASE_URL not set. Cannot proceed.")
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)

        _pool = ThreadedConnectionPool(
            minconn=1,
            maxconn=10,
            dsn=url,
            cursor_factory=RealDictCursor,
        )
        _logger.info("Connection pool initialized (min=1, max=10)")
        return _pool


def get_connection(max_wait: float = 2.0):
    """
    Get a connection from the pool, waiting up to max_wait seconds on exhaustion.
    Caller MUST return it via return_connection().
    """
    pool = _get_pool()
    start = time.time()

    while True:
        try:
            return pool.getconn()
        except psycopg2.pool.PoolError:
            elapsed = time.time() - start
            if elapsed >= max_wait:
                _logger.warning(f"Pool exhaustion after {elapsed:.2f}s")
                raise RuntimeError("DB pool exhausted. Please retry.")
            time.sleep(0.1)


def return_connection(conn, healthy: bool = True):
    """
    Return a connection to the pool.
    Unhealthy connections (connection-level error) are discarded.
    """
    pool = _get_pool()
    try:
        pool.putconn(conn, close=not healthy)
        if not healthy:
            _logger.info("Discarded unhealthy connection")
    except psycopg2.pool.PoolError as e:
        _logger.warning(f"Error returning connection: {e}")


@contextmanager
def transaction():
    """
    Transaction context manager.
    Commits once on success, rolls back on exception.
    """
    conn = get_connection()
    healthy = True
    try:
        yield conn
        conn.commit()
    except (psycopg2.OperationalError, psycopg2.InterfaceError):
        healthy = False
        conn.rollback()
        raise
    except Exception:
        conn.rollback()
        raise
    finally:
        return_connection(conn, healthy=healthy)


def execute(sql: str, params=None, *, fetch="none", conn=None):
    """
    Central DB executor.
    - fetch: "none" | "one" | "all" | "rowcount"
    - Without conn: borrows a pooled connection and commits
    - With conn: caller owns the transaction (see transaction())
    """
    query_start = time.time()
    owns_conn = conn is None
    if owns_conn:
        conn = get_connection()
    healthy = True
    try:
        with conn.cursor() as cursor:
            cursor.execute(sql, params)
            if fetch == "one":
                result = cursor.fetchone()
            elif fetch == "all":
                result = cursor.fetchall()
            elif fetch == "rowcount":
                result = cursor.rowcount
            else:
                result = None
        if owns_conn:
            conn.commit()

        elapsed_ms = (time.time() - query_start) * 1000
        if elapsed_ms > SLOW_QUERY_MS:
            query_preview = sql.strip()[:80].replace('\n', ' ')
            _logger.warning(f"SLOW QUERY ({elapsed_ms:.0f}ms): {query_preview}...")
        return result
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
        healthy = False
        _logger.error(f"Connection error: {e}")
        raise
    except psycopg2.Error:
        if owns_conn:
            conn.rollback()
        raise
    finally:
        if owns_conn:
            return_connection(conn, healthy=healthy)


# =============================================================================
# SCHEMA
# =============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS funnel_records (
    funnel_type TEXT NOT NULL,
    record_id TEXT NOT NULL,
    stage_id TEXT NOT NULL,
    probability INTEGER NOT NULL CHECK (probability BETWEEN 0 AND 100),
    owner_id TEXT,
    expected_close_date DATE,
    amount NUMERIC(14, 2) NOT NULL DEFAULT 0,
    name TEXT NOT NULL DEFAULT '',
    company TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ,
    version INTEGER NOT NULL DEFAULT 1,
    PRIMARY KEY (funnel_type, record_id)
);

CREATE TABLE IF NOT EXISTS stage_history (
    id BIGSERIAL PRIMARY KEY,
    funnel_type TEXT NOT NULL,
    record_id TEXT NOT NULL,
    from_stage TEXT NOT NULL,
    to_stage TEXT NOT NULL,
    is_regression BOOLEAN NOT NULL DEFAULT FALSE,
    changed_by TEXT,
    changed_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_stage_history_record
    ON stage_history (funnel_type, record_id, changed_at);

CREATE TABLE IF NOT EXISTS tickets (
    ticket_id TEXT PRIMARY KEY,
    status TEXT NOT NULL,
    priority TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    sla_deadline TIMESTAMPTZ NOT NULL,
    resolved_at TIMESTAMPTZ,
    subject TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL DEFAULT 'general',
    customer_name TEXT NOT NULL DEFAULT '',
    customer_email TEXT NOT NULL DEFAULT '',
    assignee_id TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    CHECK (sla_deadline > created_at)
);
"""


def init_db() -> None:
    """
    Create tables if missing.
    Guarded: runs only once per server process.
    """
    global _init_db_done
    if _init_db_done:
        return

    with _init_db_lock:
        if _init_db_done:
            return
        _logger.info("init_db() starting (first run this process)")
        with transaction() as conn:
            execute(SCHEMA_SQL, conn=conn)
        _init_db_done = True
        _logger.info("init_db() complete")


# =============================================================================
# ROW MAPPING
# =============================================================================

def _row_to_record(row: Dict[str, Any]) -> FunnelRecord:
    return FunnelRecord(
        id=row['record_id'],
        funnel_type=FunnelType(row['funnel_type']),
        stage_id=row['stage_id'],
        probability=row['probability'],
        owner_id=row['owner_id'],
        expected_close_date=row['expected_close_date'],
        amount=row['amount'],
        name=row['name'],
        company=row['company'],
        email=row['email'],
        created_at=row['created_at'],
        version=row['version'],
    )


def _row_to_ticket(row: Dict[str, Any]) -> Ticket:
    return Ticket(
        id=row['ticket_id'],
        status=row['status'],
        priority=row['priority'],
        created_at=row['created_at'],
        sla_deadline=row['sla_deadline'],
        resolved_at=row['resolved_at'],
        subject=row['subject'],
        category=row['category'],
        customer_name=row['customer_name'],
        customer_email=row['customer_email'],
        assignee_id=row['assignee_id'],
        tags=tuple(json.loads(row['tags'] or '[]')),
    )


# =============================================================================
# FUNNEL RECORDS
# =============================================================================

def upsert_funnel_record(record: FunnelRecord, *, conn=None) -> None:
    """Insert or fully replace a funnel record (used for seeding/imports)."""
    execute("""
        INSERT INTO funnel_records (
            funnel_type, record_id, stage_id, probability, owner_id,
            expected_close_date, amount, name, company, email, created_at, version
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (funnel_type, record_id) DO UPDATE SET
            stage_id = EXCLUDED.stage_id,
            probability = EXCLUDED.probability,
            owner_id = EXCLUDED.owner_id,
            expected_close_date = EXCLUDED.expected_close_date,
            amount = EXCLUDED.amount,
            name = EXCLUDED.name,
            company = EXCLUDED.company,
            email = EXCLUDED.email,
            created_at = EXCLUDED.created_at,
            version = funnel_records.version + 1
    """, (
        record.funnel_type.value, record.id, record.stage_id, record.probability,
        record.owner_id, record.expected_close_date, record.amount, record.name,
        record.company, record.email, record.created_at, record.version,
    ), conn=conn)


def get_funnel_records(funnel_type: FunnelType) -> List[FunnelRecord]:
    """All records of one funnel type, stable order by record id."""
    rows = execute("""
        SELECT * FROM funnel_records
        WHERE funnel_type = %s
        ORDER BY created_at NULLS LAST, record_id
    """, (FunnelType(funnel_type).value,), fetch="all")
    return [_row_to_record(row) for row in rows] if rows else []


def get_funnel_record(funnel_type: FunnelType, record_id: str) -> Optional[FunnelRecord]:
    row = execute("""
        SELECT * FROM funnel_records
        WHERE funnel_type = %s AND record_id = %s
    """, (FunnelType(funnel_type).value, record_id), fetch="one")
    return _row_to_record(row) if row else None


def update_funnel_stage(
    record: FunnelRecord,
    expected_version: int,
    *,
    from_stage: str,
    is_regression: bool,
    changed_by: Optional[str] = None,
) -> FunnelRecord:
    """
    Persist a transitioned record with an optimistic version check and append
    a stage_history row, in one transaction.

    Args:
        record: Record as returned by stage_engine.transition()
        expected_version: Version the caller read before transitioning
        from_stage: Stage the record was in when read

    Returns:
        Stored record with the incremented version

    Raises:
        StaleRecordError: If the stored version differs from expected_version
    """
    with transaction() as conn:
        row = execute("""
            UPDATE funnel_records
            SET stage_id = %s, probability = %s, version = version + 1
            WHERE funnel_type = %s AND record_id = %s AND version = %s
            RETURNING *
        """, (
            record.stage_id, record.probability,
            record.funnel_type.value, record.id, expected_version,
        ), fetch="one", conn=conn)

        if row is None:
            current = execute("""
                SELECT version FROM funnel_records
                WHERE funnel_type = %s AND record_id = %s
            """, (record.funnel_type.value, record.id), fetch="one", conn=conn)
            raise StaleRecordError(
                record.id, expected_version, current['version'] if current else None
            )

        execute("""
            INSERT INTO stage_history (
                funnel_type, record_id, from_stage, to_stage, is_regression, changed_by, changed_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """, (
            record.funnel_type.value, record.id, from_stage, record.stage_id,
            is_regression, changed_by, datetime.now(timezone.utc),
        ), conn=conn)

    return _row_to_record(row)


def get_stage_history(funnel_type: FunnelType, record_id: str) -> List[Dict[str, Any]]:
    """Stage changes for one record, oldest first."""
    rows = execute("""
        SELECT from_stage, to_stage, is_regression, changed_by, changed_at
        FROM stage_history
        WHERE funnel_type = %s AND record_id = %s
        ORDER BY changed_at, id
    """, (FunnelType(funnel_type).value, record_id), fetch="all")
    return [dict(row) for row in rows] if rows else []


# =============================================================================
# TICKETS
# =============================================================================

def upsert_ticket(ticket: Ticket, *, conn=None) -> None:
    execute("""
        INSERT INTO tickets (
            ticket_id, status, priority, created_at, sla_deadline, resolved_at,
            subject, category, customer_name, customer_email, assignee_id, tags
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (ticket_id) DO UPDATE SET
            status = EXCLUDED.status,
            priority = EXCLUDED.priority,
            sla_deadline = EXCLUDED.sla_deadline,
            resolved_at = EXCLUDED.resolved_at,
            subject = EXCLUDED.subject,
            category = EXCLUDED.category,
            customer_name = EXCLUDED.customer_name,
            customer_email = EXCLUDED.customer_email,
            assignee_id = EXCLUDED.assignee_id,
            tags = EXCLUDED.tags
    """, (
        ticket.id, ticket.status.value, ticket.priority.value, ticket.created_at,
        ticket.sla_deadline, ticket.resolved_at, ticket.subject, ticket.category,
        ticket.customer_name, ticket.customer_email, ticket.assignee_id,
        json.dumps(list(ticket.tags)),
    ), conn=conn)


def get_tickets() -> List[Ticket]:
    rows = execute("""
        SELECT * FROM tickets
        ORDER BY created_at, ticket_id
    """, fetch="all")
    return [_row_to_ticket(row) for row in rows] if rows else []


def get_ticket(ticket_id: str) -> Optional[Ticket]:
    row = execute("SELECT * FROM tickets WHERE ticket_id = %s", (ticket_id,), fetch="one")
    return _row_to_ticket(row) if row else None


# =============================================================================
# SEEDING
# =============================================================================

def seed_demo_data() -> Dict[str, int]:
    """
    Load demo deals, leads and tickets. Existing rows with the same keys are
    replaced. Returns counts per table.
    """
    from services.seed_data import demo_deals, demo_leads, demo_tickets

    init_db()
    records = demo_deals() + demo_leads()
    tickets = demo_tickets()
    with transaction() as conn:
        for record in records:
            upsert_funnel_record(record, conn=conn)
        for ticket in tickets:
            upsert_ticket(ticket, conn=conn)
    _logger.info(f"Seeded {len(records)} funnel records and {len(tickets)} tickets")
    return {'funnel_records': len(records), 'tickets': len(tickets)}


def clear_all_data() -> None:
    """Delete all funnel records, history and tickets."""
    with transaction() as conn:
        execute("DELETE FROM stage_history", conn=conn)
        execute("DELETE FROM funnel_records", conn=conn)
        execute("DELETE FROM tickets", conn=conn)
    _logger.warning("All CRM data cleared")
