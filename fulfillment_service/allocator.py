import logging
from datetime import datetime, timezone

from common import db as common_db

from fulfillment_service.errors import InsufficientCodes, store_errors
from fulfillment_service.models import CodeEntry, PoolStats

logger = logging.getLogger(__name__)


class CodePoolStore:
    """Append-only table of codes, one row per code with its claim marker."""

    def __init__(self, db_path: str | None = None, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def read_range(self, pool: str, sub_range: str, order_id: str | None = None) -> list[CodeEntry]:
        """Entries of a sub-range in position order.

        With ``order_id``, only entries still free or already held by that
        order are returned.
        """
        sql = (
            "SELECT position, value, claimed, claimed_by FROM code_pool "
            "WHERE pool = ? AND sub_range = ?"
        )
        params: tuple = (pool, sub_range)
        if order_id is not None:
            sql += " AND (claimed = 0 OR claimed_by = ?)"
            params += (order_id,)
        with store_errors("code pool"), common_db.session(self.db_path, self.timeout) as conn:
            rows = conn.execute(sql + " ORDER BY position", params).fetchall()
        return [
            CodeEntry(position=row[0], value=row[1], claimed=bool(row[2]), claimed_by=row[3])
            for row in rows
        ]

    def mark_claimed(self, pool: str, sub_range: str, position: int, order_id: str) -> bool:
        # Conditional update: only one caller can flip an entry from unclaimed.
        with store_errors("code pool"), common_db.session(self.db_path, self.timeout) as conn:
            cur = conn.execute(
                "UPDATE code_pool SET claimed = 1, claimed_by = ?, claimed_at = ? "
                "WHERE pool = ? AND sub_range = ? AND position = ? AND claimed = 0",
                (order_id, datetime.now(timezone.utc).isoformat(), pool, sub_range, position),
            )
            return cur.rowcount == 1

    def append_codes(self, pool: str, sub_range: str, values: list[str]) -> int:
        with store_errors("code pool"), common_db.session(self.db_path, self.timeout) as conn:
            # Take the write lock before reading the tail so concurrent loads
            # cannot hand out the same positions.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT COALESCE(MAX(position), 0) FROM code_pool WHERE pool = ? AND sub_range = ?",
                (pool, sub_range),
            ).fetchone()
            position = row[0] + 1
            added = 0
            # A value already present anywhere in the pool is skipped, so
            # loading the same file twice never issues a code twice.
            for value in values:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO code_pool (pool, sub_range, position, value) VALUES (?, ?, ?, ?)",
                    (pool, sub_range, position, value),
                )
                if cur.rowcount == 1:
                    added += 1
                    position += 1
        skipped = len(values) - added
        if skipped:
            logger.warning("Skipped %d duplicate code(s) for %s!%s", skipped, pool, sub_range)
        logger.info("Added %d codes to %s!%s", added, pool, sub_range)
        return added

    def stats(self, pool: str, sub_range: str) -> PoolStats:
        with store_errors("code pool"), common_db.session(self.db_path, self.timeout) as conn:
            total, claimed = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(claimed), 0) FROM code_pool "
                "WHERE pool = ? AND sub_range = ?",
                (pool, sub_range),
            ).fetchone()
        return PoolStats(
            pool=pool, sub_range=sub_range, total=total, claimed=claimed, available=total - claimed
        )


class CodeAllocator:
    def __init__(self, store: CodePoolStore):
        self.store = store

    def allocate(self, pool: str, sub_range: str, quantity: int, order_id: str) -> list[str]:
        """Claim ``quantity`` codes for ``order_id``, first unclaimed position first.

        Codes this order already holds from an earlier, unfinished attempt are
        handed back before anything new is claimed. Entries claimed before
        running out stay claimed.
        """
        if quantity < 1:
            raise ValueError(f"quantity must be at least 1, got {quantity}")

        entries = self.store.read_range(pool, sub_range, order_id)
        taken: list[tuple[int, str]] = [
            (entry.position, entry.value)
            for entry in entries
            if entry.claimed and entry.claimed_by == order_id
        ][:quantity]
        if taken:
            logger.info("Order %s already holds %d code(s) in %s!%s", order_id, len(taken), pool, sub_range)

        for entry in entries:
            if len(taken) >= quantity:
                break
            if entry.claimed:
                continue
            if self.store.mark_claimed(pool, sub_range, entry.position, order_id):
                taken.append((entry.position, entry.value))
            else:
                logger.info("Position %d in %s!%s claimed concurrently, moving on", entry.position, pool, sub_range)

        if len(taken) < quantity:
            raise InsufficientCodes(pool, sub_range, quantity, len(taken))

        taken.sort()
        return [value for _, value in taken]
