"""Failure taxonomy for the fulfillment workflow.

Every error raised by the core carries a short ``kind`` that ends up in the
operator log next to the order id.
"""

import sqlite3
from contextlib import contextmanager
from typing import Iterator


class FulfillmentError(Exception):
    kind = "fulfillment_error"


class MalformedNotification(FulfillmentError):
    kind = "malformed_notification"


class ClassificationError(FulfillmentError):
    kind = "classification_error"


class UnknownGame(ClassificationError):
    kind = "unknown_game"


class UnknownCodeType(ClassificationError):
    kind = "unknown_code_type"


class InsufficientCodes(FulfillmentError):
    kind = "insufficient_codes"

    def __init__(self, pool: str, sub_range: str, requested: int, found: int):
        super().__init__(
            f"Not enough available codes in {pool}!{sub_range}: "
            f"requested {requested}, found {found}"
        )
        self.pool = pool
        self.sub_range = sub_range
        self.requested = requested
        self.found = found


class DeliveryFailed(FulfillmentError):
    kind = "delivery_failed"


class ShipmentConfirmationFailed(FulfillmentError):
    kind = "shipment_confirmation_failed"


class StoreUnavailable(FulfillmentError):
    kind = "store_unavailable"


@contextmanager
def store_errors(store: str) -> Iterator[None]:
    # Locked database, busy timeout and I/O errors all look the same to callers.
    try:
        yield
    except sqlite3.Error as exc:
        raise StoreUnavailable(f"{store} store unavailable: {exc}") from exc
