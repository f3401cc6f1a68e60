"""
SQLite-backed credential store.

Keeps the keychain in a local database file so several processes on one host
can share it. Counter updates are conditional on the row version, so two
processes racing on the same HOTP key cannot both consume the same counter.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from twofa_core.errors import PermissionDenied, RecordNotFound, StoreUnavailable

from .base import COUNTER_FIELD, SIZE_FIELD, TEXT_FIELD, CredentialStore, StoredRecord, parse_counter
from .setup_database import setup_database

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
_SEPARATOR = "/"
_COLUMNS = (SIZE_FIELD, TEXT_FIELD, COUNTER_FIELD)


def _translate(exc: sqlite3.Error, action: str, path: str) -> Exception:
    msg = f"{action} {path!r}: {exc}"
    if "readonly" in str(exc).lower():
        return PermissionDenied(msg)
    return StoreUnavailable(msg)


class SQLiteCredentialStore(CredentialStore):
    """Credential store in a single SQLite file."""

    supports_conditional_write = True

    def __init__(self, db_file: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.db_file = db_file
        self.timeout = timeout
        try:
            setup_database(db_file)
        except sqlite3.Error as exc:
            raise _translate(exc, "opening database", db_file) from exc
        except OSError as exc:
            raise StoreUnavailable(f"cannot create database {db_file!r}: {exc}") from exc

    def get_db_connection(self) -> sqlite3.Connection:
        """Open a connection; rows come back as sqlite3.Row (dict-like)."""
        try:
            conn = sqlite3.connect(self.db_file, timeout=self.timeout)
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot open database {self.db_file!r}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    def list(self, root: str) -> list[str]:
        prefix = root.rstrip(_SEPARATOR) + _SEPARATOR
        conn = self.get_db_connection()
        try:
            # substr() instead of LIKE so '%' and '_' in the root match literally
            rows = conn.execute(
                "SELECT path FROM credentials WHERE substr(path, 1, ?) = ?",
                (len(prefix), prefix),
            ).fetchall()
        except sqlite3.Error as exc:
            raise _translate(exc, "listing", root) from exc
        finally:
            conn.close()

        names = [row["path"][len(prefix):] for row in rows]
        return [n for n in names if n and _SEPARATOR not in n]

    def read(self, path: str) -> StoredRecord:
        conn = self.get_db_connection()
        try:
            row = conn.execute(
                "SELECT size, text, counter, version FROM credentials WHERE path = ?",
                (path,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise _translate(exc, "reading", path) from exc
        finally:
            conn.close()

        if row is None:
            raise RecordNotFound(f"no secret at {path!r}")
        return StoredRecord(
            size=row["size"],
            text=row["text"],
            counter=parse_counter(row["counter"], path),
            version=row["version"],
        )

    def write(self, path: str, fields: dict[str, Any]) -> None:
        values = {k: None if fields[k] == "" else fields[k] for k in _COLUMNS if k in fields}
        if COUNTER_FIELD in values:
            values[COUNTER_FIELD] = parse_counter(values[COUNTER_FIELD], path)

        columns = ", ".join(["path", *values])
        placeholders = ", ".join("?" for _ in range(len(values) + 1))
        updates = ", ".join([*(f"{k} = excluded.{k}" for k in values), "version = version + 1",
                             "updated_at = CURRENT_TIMESTAMP"])
        sql = (
            f"INSERT INTO credentials ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT(path) DO UPDATE SET {updates}"
        )

        conn = self.get_db_connection()
        try:
            with conn:
                conn.execute(sql, (path, *values.values()))
        except sqlite3.Error as exc:
            raise _translate(exc, "writing", path) from exc
        finally:
            conn.close()

    def replace_counter(self, path: str, seen: StoredRecord, counter: int) -> bool:
        conn = self.get_db_connection()
        try:
            with conn:
                cursor = conn.execute(
                    "UPDATE credentials SET counter = ?, version = version + 1, "
                    "updated_at = CURRENT_TIMESTAMP WHERE path = ? AND version = ?",
                    (counter, path, seen.version),
                )
        except sqlite3.Error as exc:
            raise _translate(exc, "updating counter at", path) from exc
        finally:
            conn.close()

        if cursor.rowcount != 1:
            logger.debug("conditional counter write lost at %s (version %s)", path, seen.version)
            return False
        return True
