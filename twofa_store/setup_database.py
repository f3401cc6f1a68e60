import logging
import os
import sqlite3

logger = logging.getLogger(__name__)


def setup_database(db_file: str) -> None:
    """Create the credentials table (and the parent directory) if missing."""

    # Make sure the directory exists
    directory = os.path.dirname(os.path.abspath(db_file))
    os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(db_file)
    try:
        # One row per credential path; counter is NULL for time-based keys.
        # version is bumped on every write and drives conditional updates.
        conn.execute('''
        CREATE TABLE IF NOT EXISTS credentials (
            path TEXT PRIMARY KEY,
            size TEXT,
            text TEXT,
            counter INTEGER,
            version INTEGER NOT NULL DEFAULT 1,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        ''')
        conn.commit()
    finally:
        conn.close()
    logger.debug("credential database ready at %s", db_file)


if __name__ == "__main__":
    import sys

    setup_database(sys.argv[1] if len(sys.argv) > 1 else os.path.expanduser("~/.2fa-vault.db"))
