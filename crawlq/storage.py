import logging
import sqlite3
from functools import wraps
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .errors import PersistenceError
from .models import DEFAULTS
from .utils import utcnow_iso

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks(
  id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,
  payload TEXT NOT NULL,
  status TEXT NOT NULL,
  attempts INTEGER NOT NULL DEFAULT 0,
  last_error TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status, id);
CREATE TABLE IF NOT EXISTS config(
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);
"""


def with_conn(fn):
    """Hand the wrapped method the live connection; sqlite errors become PersistenceError."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        if self.conn is None:
            raise PersistenceError(f"store {self.path} is closed")
        try:
            return fn(self, self.conn, *args, **kwargs)
        except sqlite3.Error as e:
            logger.error("%s failed on %s: %s", fn.__name__, self.path, e)
            raise PersistenceError(f"{fn.__name__}: {e}") from e
    return wrapper


class Store:
    """One sqlite3 connection holding the tasks and config tables."""

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        self.conn: Optional[sqlite3.Connection] = None
        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.path)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"cannot open {self.path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        try:
            self.init_db()
        except PersistenceError:
            self.close()
            raise

    @classmethod
    def open(cls, path: Union[str, Path] = ":memory:") -> "Store":
        return cls(path)

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @with_conn
    def init_db(self, conn: sqlite3.Connection):
        if self.path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(SCHEMA)
        for k, v in DEFAULTS.items():
            conn.execute(
                "INSERT INTO config(key,value) VALUES(?,?) ON CONFLICT(key) DO NOTHING",
                (k, str(v)),
            )
        conn.commit()

    # -----------------------------
    # tasks
    # -----------------------------
    @with_conn
    def insert_task(self, conn, payload: str, status: str) -> int:
        now = utcnow_iso()
        cur = conn.execute(
            "INSERT INTO tasks(payload,status,attempts,created_at,updated_at) VALUES(?,?,0,?,?)",
            (payload, status, now, now),
        )
        conn.commit()
        return cur.lastrowid

    @with_conn
    def count_status(self, conn, status: str, after_id: int = 0) -> int:
        cur = conn.execute("SELECT COUNT(id) FROM tasks WHERE status=? AND id>?", (status, after_id))
        return cur.fetchone()[0]

    @with_conn
    def first_with_status(self, conn, status: str, after_id: int = 0) -> Optional[sqlite3.Row]:
        cur = conn.execute(
            "SELECT * FROM tasks WHERE status=? AND id>? ORDER BY id LIMIT 1", (status, after_id)
        )
        return cur.fetchone()

    @with_conn
    def get_task(self, conn, task_id: int) -> Optional[sqlite3.Row]:
        return conn.execute("SELECT * FROM tasks WHERE id=?", (task_id,)).fetchone()

    @with_conn
    def list_tasks(self, conn, status: Optional[str] = None) -> List[sqlite3.Row]:
        if status:
            cur = conn.execute("SELECT * FROM tasks WHERE status=? ORDER BY id", (status,))
        else:
            cur = conn.execute("SELECT * FROM tasks ORDER BY id")
        return cur.fetchall()

    @with_conn
    def counts_by_status(self, conn) -> List[Tuple[str, int]]:
        cur = conn.execute("SELECT status, COUNT(*) FROM tasks GROUP BY status ORDER BY status")
        return [(row[0], row[1]) for row in cur.fetchall()]

    @with_conn
    def set_status(self, conn, task_id: int, status: str, last_error: Optional[str] = None) -> int:
        cur = conn.execute(
            "UPDATE tasks SET status=?, last_error=COALESCE(?, last_error), updated_at=? WHERE id=?",
            (status, last_error, utcnow_iso(), task_id),
        )
        conn.commit()
        return cur.rowcount

    @with_conn
    def record_attempt(self, conn, task_id: int, attempts: int, last_error: str):
        conn.execute(
            "UPDATE tasks SET attempts=?, last_error=?, updated_at=? WHERE id=?",
            (attempts, last_error, utcnow_iso(), task_id),
        )
        conn.commit()

    # -----------------------------
    # config
    # -----------------------------
    @with_conn
    def config_get(self, conn, key: str, default: Optional[str] = None) -> Optional[str]:
        row = conn.execute("SELECT value FROM config WHERE key=?", (key,)).fetchone()
        return row[0] if row else default

    @with_conn
    def config_set(self, conn, key: str, value: str):
        conn.execute(
            "INSERT INTO config(key,value) VALUES(?,?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )
        conn.commit()
