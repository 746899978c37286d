"""Data Access Layer for the cost ledger and metadata store.

Responsibilities
----------------
- Append cost rows (one transaction per row) and read them back in insertion order.
- Read and write the ``metadata`` key/value table used for persisted settings.

Methods are synchronous and open one connection per call; async callers run
them in a worker thread (see ``cost_manager.services.ledger``).
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .schema import BASIC_UTC_NOW

_COST_COLUMNS = "id, sum, currency, category, description, year, month, day"


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor inside one transaction; commit on success, roll back on error."""
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Costs
    def insert_cost(
        self,
        sum_: float,
        currency: str,
        category: str,
        description: str,
        year: int,
        month: int,
        day: int,
    ) -> Dict[str, Any]:
        """Insert one row and return it as stored (including the new id)."""
        with self._session() as cur:
            cur.execute(
                """
                INSERT INTO costs (sum, currency, category, description, year, month, day)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (sum_, currency, category, description, year, month, day),
            )
            cost_id = int(cur.lastrowid)
            cur.execute(f"SELECT {_COST_COLUMNS} FROM costs WHERE id = ?", (cost_id,))
            return dict(cur.fetchone())

    def list_costs(self) -> List[Dict[str, Any]]:
        with self._session() as cur:
            cur.execute(f"SELECT {_COST_COLUMNS} FROM costs ORDER BY id ASC")
            return [dict(r) for r in cur.fetchall()]

    def count_costs(self) -> int:
        with self._session() as cur:
            cur.execute("SELECT COUNT(*) FROM costs")
            row = cur.fetchone()
            return int(row[0] if row and row[0] is not None else 0)

    # ------------------------------------------------------------------
    # Metadata
    def get_metadata(self, keys: Iterable[str]) -> Dict[str, str]:
        keys = tuple(keys)
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        with self._session() as cur:
            cur.execute(
                f"SELECT key, value FROM metadata WHERE key IN ({placeholders})", keys
            )
            return {r[0]: r[1] for r in cur.fetchall()}

    def set_metadata(self, values: Mapping[str, Optional[str]]) -> None:
        """Upsert several keys atomically; a ``None`` value deletes the key."""
        upserts: List[Tuple[str, str]] = []
        deletes: List[Tuple[str]] = []
        for key, value in values.items():
            if value is None:
                deletes.append((key,))
            else:
                upserts.append((key, value))
        with self._session() as cur:
            cur.executemany(
                "INSERT INTO metadata(key,value) VALUES(?,?) ON CONFLICT(key) DO UPDATE "
                f"SET value=excluded.value, updated_at=({BASIC_UTC_NOW})",
                upserts,
            )
            cur.executemany("DELETE FROM metadata WHERE key = ?", deletes)
