from enum import Enum

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"
    OTHER = "OTHER"


class FulfillmentState(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    ALLOCATED = "allocated"
    NOTIFIED = "notified"
    SHIPMENT_CONFIRMED = "shipment_confirmed"
    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"


class Order(BaseModel):
    order_id: str
    transaction_id: str
    item_id: str
    item_title: str
    buyer_id: str
    payment_status: PaymentStatus
    quantity: int = Field(gt=0)


class Classification(BaseModel):
    pool: str
    sub_range: str


class CodeEntry(BaseModel):
    position: int
    value: str
    claimed: bool = False
    claimed_by: str | None = None


class FulfillmentResult(BaseModel):
    order_id: str
    state: FulfillmentState
    codes: list[str] = []
    reason: str | None = None


class NotificationAck(BaseModel):
    message: str
    order_id: str
    state: FulfillmentState


class AddCodesRequest(BaseModel):
    pool: str
    sub_range: str
    codes: list[str] = Field(min_length=1)


class PoolStats(BaseModel):
    pool: str
    sub_range: str
    total: int
    claimed: int
    available: int


class ConfigRequest(BaseModel):
    marketplace_timeout_s: float | None = None
