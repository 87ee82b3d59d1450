"""
SQLite-backed event store.
Holds normalized EventRecords and answers the filtered reads the category
stores build on (actor, category, action, time range, repo set).
"""

import sqlite3
import threading
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

import structlog

from normalize.models import EventRecord

log = structlog.get_logger("contrib_stats.storage")

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT UNIQUE,
    category TEXT NOT NULL,
    actor_login TEXT NOT NULL,
    repo_name TEXT NOT NULL,
    event_time REAL NOT NULL,
    action TEXT,
    push_ref TEXT,
    push_num_commits INTEGER DEFAULT 0,
    pr_number INTEGER,
    pr_author_login TEXT,
    pr_is_merged INTEGER DEFAULT 0,
    pr_active_lock_reason TEXT,
    pr_created_at REAL,
    pr_closed_at REAL
);
CREATE INDEX IF NOT EXISTS idx_events_actor ON events (category, actor_login, event_time);
CREATE INDEX IF NOT EXISTS idx_events_pr_author ON events (category, pr_author_login, event_time);
"""

_COLUMNS = (
    'event_id', 'category', 'actor_login', 'repo_name', 'event_time', 'action', 'push_ref', 'push_num_commits',
    'pr_number', 'pr_author_login', 'pr_is_merged', 'pr_active_lock_reason', 'pr_created_at', 'pr_closed_at',
)


def _to_epoch(dt: Optional[datetime]) -> Optional[float]:
    return dt.timestamp() if dt is not None else None


def _from_epoch(ts: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(ts, tz=timezone.utc) if ts is not None else None


def _row_to_record(row: sqlite3.Row) -> EventRecord:
    return EventRecord(
        category=row['category'],
        actor_login=row['actor_login'],
        repo_name=row['repo_name'],
        event_time=_from_epoch(row['event_time']),
        action=row['action'],
        event_id=row['event_id'],
        push_ref=row['push_ref'],
        push_num_commits=int(row['push_num_commits'] or 0),
        pr_number=row['pr_number'],
        pr_author_login=row['pr_author_login'],
        pr_is_merged=bool(row['pr_is_merged']),
        pr_active_lock_reason=row['pr_active_lock_reason'],
        pr_created_at=_from_epoch(row['pr_created_at']),
        pr_closed_at=_from_epoch(row['pr_closed_at']),
    )


class EventStore:
    def __init__(self, path: Optional[str] = None):
        """Create an event store.

        :param path: SQLite file path or None for in-memory.
        """
        self.path = path or ':memory:'
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()

    def _init_db(self):
        with self._lock:
            cur = self.conn.cursor()
            cur.executescript(SQL_CREATE)
            self.conn.commit()

    def close(self):
        with self._lock:
            if self.conn is not None:
                try:
                    self.conn.close()
                finally:
                    self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def add_many(self, records: Iterable[EventRecord]) -> int:
        """Insert records; events whose event_id is already stored are skipped. Returns rows inserted."""
        rows = []
        for r in records:
            rows.append((
                r.event_id, r.category, r.actor_login.lower(), r.repo_name.lower(), _to_epoch(r.event_time), r.action,
                r.push_ref, int(r.push_num_commits or 0), r.pr_number,
                r.pr_author_login.lower() if r.pr_author_login else None, 1 if r.pr_is_merged else 0,
                r.pr_active_lock_reason, _to_epoch(r.pr_created_at), _to_epoch(r.pr_closed_at),
            ))
        if not rows:
            return 0
        placeholders = ', '.join('?' for _ in _COLUMNS)
        with self._lock:
            cur = self.conn.cursor()
            before = self.conn.total_changes
            # noinspection SqlResolve
            cur.executemany(f"INSERT OR IGNORE INTO events ({', '.join(_COLUMNS)}) VALUES ({placeholders})", rows)
            self.conn.commit()
            inserted = self.conn.total_changes - before
        log.debug("events.inserted", count=inserted, skipped=len(rows) - inserted)
        return inserted

    def add(self, record: EventRecord) -> int:
        return self.add_many([record])

    # noinspection SqlResolve
    def query(
        self,
        category: str,
        login: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        repos: Optional[Sequence[str]] = None,
        actions: Optional[Sequence[str]] = None,
        refs: Optional[Sequence[str]] = None,
        login_field: str = 'actor_login',
        newest_first: bool = False,
    ) -> List[EventRecord]:
        """Return events of one category matching every supplied filter.

        ``since`` is exclusive and ``until`` inclusive. ``login_field`` selects
        which login column ``login`` is matched against (actor or PR author).
        """
        if login_field not in ('actor_login', 'pr_author_login'):
            raise ValueError(f"unsupported login field: {login_field}")
        clauses = ['category = ?']
        params: list = [category]
        if login is not None:
            clauses.append(f'{login_field} = ?')
            params.append(login.lower())
        if since is not None:
            clauses.append('event_time > ?')
            params.append(_to_epoch(since))
        if until is not None:
            clauses.append('event_time <= ?')
            params.append(_to_epoch(until))
        for column, values in (('repo_name', [r.lower() for r in repos] if repos else None), ('action', actions), ('push_ref', refs)):
            if values:
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
        order = 'DESC' if newest_first else 'ASC'
        sql = f"SELECT * FROM events WHERE {' AND '.join(clauses)} ORDER BY event_time {order}, id {order}"
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    # noinspection SqlResolve
    def stats(self) -> dict:
        """Return the number of stored events per category."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute('SELECT category, COUNT(1) FROM events GROUP BY category')
            rows = cur.fetchall()
        return {category: int(count) for category, count in rows}
