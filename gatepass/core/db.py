"""
SQLite record store: connection handling and schema.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from . import config
from .schema import STAGE_ORDER


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    config.ensure_db_directory(config.DB_PATH)
    conn = sqlite3.connect(config.DB_PATH, timeout=config.DB_TIMEOUT_SEC)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def _stage_columns() -> str:
    columns = []
    for stage in STAGE_ORDER:
        columns.append(f"""
                {stage.value}_status TEXT NOT NULL DEFAULT 'pending'
                    CHECK ({stage.value}_status IN ('pending', 'approved', 'rejected')),
                {stage.value}_comment TEXT,
                {stage.value}_decided_at TEXT,
                {stage.value}_decided_by TEXT,""")
    return "".join(columns)


def init_db():
    """Initialize the database with required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        # Directory data mirrored from the identity provider
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS people (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                role TEXT NOT NULL,
                external_id TEXT
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS roster (
                advisor_id TEXT NOT NULL,
                requester_id TEXT NOT NULL,
                PRIMARY KEY (advisor_id, requester_id)
            )
        ''')

        # Timestamps are stored as fixed-width UTC ISO strings so they compare as text
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS leave_requests (
                id TEXT PRIMARY KEY,
                requester_id TEXT NOT NULL,
                from_instant TEXT NOT NULL,
                to_instant TEXT NOT NULL,
                reason TEXT NOT NULL,
                destination TEXT NOT NULL,
                emergency_contact TEXT NOT NULL,
                attachment TEXT,
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'approved', 'rejected')),{_stage_columns()}
                access_token TEXT,
                token_expires_at TEXT,
                scan_state TEXT NOT NULL DEFAULT 'not_scanned'
                    CHECK (scan_state IN ('not_scanned', 'exited', 'returned')),
                exited_at TEXT,
                returned_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                CHECK (to_instant > from_instant),
                CHECK ((access_token IS NULL) = (status != 'approved'))
            )
        ''')

        cursor.execute('CREATE UNIQUE INDEX IF NOT EXISTS idx_leave_token ON leave_requests(access_token)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_leave_requester_created ON leave_requests(requester_id, created_at DESC)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_leave_status ON leave_requests(status)')
        for stage in STAGE_ORDER:
            cursor.execute(
                f'CREATE INDEX IF NOT EXISTS idx_leave_{stage.value}_status '
                f'ON leave_requests({stage.value}_status)'
            )

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS scan_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                request_id TEXT,
                staff_id TEXT NOT NULL,
                presented_token TEXT NOT NULL,
                direction TEXT CHECK (direction IS NULL OR direction IN ('exit', 'return')),
                valid INTEGER NOT NULL,
                failure_reason TEXT,
                recorded_at TEXT NOT NULL
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_scan_request_ts ON scan_events(request_id, recorded_at DESC)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_scan_staff_ts ON scan_events(staff_id, recorded_at DESC)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_scan_ts ON scan_events(recorded_at DESC)')

        # Scan events are write-once
        cursor.execute('''
            CREATE TRIGGER IF NOT EXISTS scan_events_no_update
            BEFORE UPDATE ON scan_events
            BEGIN
                SELECT RAISE(ABORT, 'scan_events is append-only');
            END
        ''')
        cursor.execute('''
            CREATE TRIGGER IF NOT EXISTS scan_events_no_delete
            BEFORE DELETE ON scan_events
            BEGIN
                SELECT RAISE(ABORT, 'scan_events is append-only');
            END
        ''')

        conn.commit()


def health_check():
    """Check database health."""
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = cursor.fetchall()

            # Check if required tables exist
            table_names = [table[0] for table in tables]
            required_tables = ['people', 'roster', 'leave_requests', 'scan_events']

            return all(table in table_names for table in required_tables)
    except Exception:
        return False
