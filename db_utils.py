import json
import os
import sqlite3
import threading

from app_context import DB_PATH


class SQLiteAdapter:
    """Persistent store keeping each user record as a JSON document."""

    def __init__(self, db_path=None):
        self.db_path = db_path or DB_PATH
        self._lock = threading.Lock()
        # An in-memory database only lives as long as its connection
        self._shared_conn = None
        if self.db_path == ":memory:":
            self._shared_conn = sqlite3.connect(":memory:", check_same_thread=False)
        self.init_db()

    def get_db_connection(self):
        if self._shared_conn is not None:
            return self._shared_conn
        return sqlite3.connect(self.db_path)

    def _release(self, conn):
        if conn is not self._shared_conn:
            conn.close()

    def init_db(self):
        if self.db_path != ":memory:" and os.path.dirname(self.db_path):
            os.makedirs(os.path.dirname(self.db_path), exist_ok=True)

        with self._lock:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS webauthn_users (
                        username TEXT PRIMARY KEY,
                        data TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
                conn.commit()
            finally:
                self._release(conn)

    def get(self, key):
        with self._lock:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("SELECT data FROM webauthn_users WHERE username = ?", (key,))
                row = cursor.fetchone()
            finally:
                self._release(conn)
        return json.loads(row[0]) if row else None

    def put(self, key, value):
        data = json.dumps(value)
        with self._lock:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO webauthn_users (username, data, updated_at)
                    VALUES (?, ?, datetime('now'))
                    ON CONFLICT(username) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    (key, data),
                )
                conn.commit()
            finally:
                self._release(conn)

    def delete(self, key):
        with self._lock:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM webauthn_users WHERE username = ?", (key,))
                deleted = cursor.rowcount
                conn.commit()
            finally:
                self._release(conn)
        return deleted > 0

    def count(self):
        with self._lock:
            conn = self.get_db_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) FROM webauthn_users")
                total = cursor.fetchone()[0]
            finally:
                self._release(conn)
        return total
