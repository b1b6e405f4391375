import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

DB_ENV = "DB_PATH"
DEFAULT_DB_PATH = str(Path(__file__).resolve().parent / "db" / "fulfillment.db")
SCHEMA_PATH = Path(__file__).resolve().parent / "db" / "schema.sql"


def get_db_path() -> str:
    return os.environ.get(DB_ENV, DEFAULT_DB_PATH)


def connect(db_path: str | None = None, timeout: float = 5.0) -> sqlite3.Connection:
    path = db_path or get_db_path()
    conn = sqlite3.connect(path, check_same_thread=False, timeout=timeout)
    # WAL lets several workers read while one of them writes a claim.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


@contextmanager
def session(db_path: str | None = None, timeout: float = 5.0) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path, timeout=timeout)
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str | None = None) -> None:
    path = db_path or get_db_path()
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    # Schema uses IF NOT EXISTS everywhere so re-applying is a no-op.
    conn = connect(path)
    try:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as handle:
            conn.executescript(handle.read())
        conn.commit()
    finally:
        conn.close()
