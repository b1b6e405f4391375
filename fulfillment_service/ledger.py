import logging
import time
import uuid

from common import db as common_db

from fulfillment_service.errors import store_errors

logger = logging.getLogger(__name__)

IN_PROGRESS = "in_progress"
PROCESSED = "processed"


class IdempotencyLedger:
    """Record of orders that already had codes issued and the buyer notified.

    ``try_claim`` is the dedup gate: the insert only succeeds for the first
    caller, so two deliveries of the same notification cannot both proceed.
    A claim left behind by a crashed worker can be taken over once it is
    older than ``claim_ttl_s``.
    """

    def __init__(self, db_path: str | None = None, timeout: float = 5.0, claim_ttl_s: float = 300.0):
        self.db_path = db_path
        self.timeout = timeout
        self.claim_ttl_s = claim_ttl_s

    def has_processed(self, order_id: str) -> bool:
        with store_errors("ledger"), common_db.session(self.db_path, self.timeout) as conn:
            row = conn.execute(
                "SELECT 1 FROM processed_orders WHERE order_id = ? AND status = ?",
                (order_id, PROCESSED),
            ).fetchone()
        return row is not None

    def try_claim(self, order_id: str) -> str | None:
        """Claim the order for this invocation.

        Returns the claim token the caller must hand back to ``release`` and
        ``mark_processed``, or None when another invocation holds the order
        or it is already processed.
        """
        token = uuid.uuid4().hex
        now = time.time()
        with store_errors("ledger"), common_db.session(self.db_path, self.timeout) as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO processed_orders (order_id, status, claim_token, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (order_id, IN_PROGRESS, token, now),
            )
            if cur.rowcount == 1:
                return token

            cur = conn.execute(
                "UPDATE processed_orders SET claim_token = ?, updated_at = ? "
                "WHERE order_id = ? AND status = ? AND updated_at < ?",
                (token, now, order_id, IN_PROGRESS, now - self.claim_ttl_s),
            )
            if cur.rowcount == 1:
                logger.warning("Took over stale claim for order %s", order_id)
                return token
        return None

    def mark_processed(self, order_id: str, claim_token: str | None = None) -> None:
        with store_errors("ledger"), common_db.session(self.db_path, self.timeout) as conn:
            if claim_token is not None:
                held = conn.execute(
                    "SELECT 1 FROM processed_orders WHERE order_id = ? AND status = ? AND claim_token = ?",
                    (order_id, IN_PROGRESS, claim_token),
                ).fetchone()
                if held is None:
                    # Codes were delivered either way; the record must say so.
                    logger.warning("Order %s was no longer held by this claim when recorded", order_id)
            conn.execute(
                "INSERT OR REPLACE INTO processed_orders (order_id, status, claim_token, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (order_id, PROCESSED, claim_token, time.time()),
            )

    def release(self, order_id: str, claim_token: str) -> None:
        # Only the current holder may drop an unfinished claim.
        with store_errors("ledger"), common_db.session(self.db_path, self.timeout) as conn:
            cur = conn.execute(
                "DELETE FROM processed_orders WHERE order_id = ? AND status = ? AND claim_token = ?",
                (order_id, IN_PROGRESS, claim_token),
            )
            if cur.rowcount == 0:
                logger.warning("Claim for order %s was taken over, leaving it in place", order_id)
