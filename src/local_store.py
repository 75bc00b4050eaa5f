import os
import sqlite3
import logging
from datetime import datetime
from typing import Any, Optional
from encoder_decoder import encode_value, decode_value
from config import DB_PATH

logger = logging.getLogger(__name__)


class LocalStore:
    """Key/value store on a local SQLite file. Values are JSON, LZMA-encoded on disk.

    Writes are fire-and-forget: a failed save or remove is logged, never raised.
    """
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._init_db()
        logger.info(f"LocalStore ready at {db_path}", extra={'persona_id': '-'})

    def _create_table(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at REAL
                )
            ''')
            conn.commit()
        finally:
            conn.close()

    def _init_db(self):
        try:
            self._create_table()
        except sqlite3.DatabaseError as e:
            # Unreadable file: keep it aside for inspection and start fresh
            corrupt_path = f"{self.db_path}.corrupt"
            logger.warning(f"Database {self.db_path} unreadable ({e}), moving it to {corrupt_path}",
                           extra={'persona_id': '-'})
            os.replace(self.db_path, corrupt_path)
            self._create_table()

    def save(self, key: str, value: Any):
        encoded = encode_value(value)
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute(
                    'INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)',
                    (key, encoded, datetime.now().timestamp())
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Saving '{key}' failed: {e}", extra={'persona_id': '-'})
            return
        logger.debug(f"Saved '{key}' ({len(encoded)} chars)", extra={'persona_id': '-'})

    def load(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when missing or unreadable."""
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                row = conn.execute('SELECT value FROM kv_store WHERE key = ?', (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Loading '{key}' failed, treating as absent: {e}", extra={'persona_id': '-'})
            return None
        if row is None:
            return None
        try:
            return decode_value(row[0])
        except ValueError as e:
            logger.warning(f"Ignoring malformed value for '{key}': {e}", extra={'persona_id': '-'})
            return None

    def remove(self, key: str):
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute('DELETE FROM kv_store WHERE key = ?', (key,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Removing '{key}' failed: {e}", extra={'persona_id': '-'})
            return
        logger.debug(f"Removed '{key}'", extra={'persona_id': '-'})
