from unittest.mock import MagicMock

import pytest

from common import db as common_db

from fulfillment_service.allocator import CodeAllocator, CodePoolStore
from fulfillment_service.classifier import ListingClassifier
from fulfillment_service.config import DEFAULT_RULES_PATH
from fulfillment_service.ledger import IdempotencyLedger

NOTIFICATION_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/">
  <soapenv:Body>
    <GetItemTransactionsResponse xmlns="urn:ebay:apis:eBLBaseComponents">
      <Ack>Success</Ack>
      <Item>
        <ItemID>{item_id}</ItemID>
        <Title>{title}</Title>
      </Item>
      <TransactionArray>
        <Transaction>
          <Buyer><UserID>{buyer_id}</UserID></Buyer>
          <QuantityPurchased>{quantity}</QuantityPurchased>
          <Status><eBayPaymentStatus>{payment_status}</eBayPaymentStatus></Status>
          <TransactionID>{transaction_id}</TransactionID>
          <ContainingOrder><OrderID>{order_id}</OrderID></ContainingOrder>
        </Transaction>
      </TransactionArray>
    </GetItemTransactionsResponse>
  </soapenv:Body>
</soapenv:Envelope>"""


def make_notification(**overrides) -> str:
    fields = {
        "item_id": "110001",
        "title": "Game1 Item32 Deluxe",
        "buyer_id": "buyer_one",
        "quantity": "1",
        "payment_status": "NoPaymentFailure",
        "transaction_id": "txn-1",
        "order_id": "ord-1",
    }
    fields.update(overrides)
    return NOTIFICATION_TEMPLATE.format(**fields)


def ebay_response(ack: str = "Success", status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = f'<Response xmlns="urn:ebay:apis:eBLBaseComponents"><Ack>{ack}</Ack></Response>'
    return resp


@pytest.fixture()
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "fulfillment.db")
    monkeypatch.setenv(common_db.DB_ENV, path)
    common_db.init_db(path)
    return path


@pytest.fixture()
def ledger(db_path):
    return IdempotencyLedger(db_path=db_path, timeout=5.0, claim_ttl_s=300.0)


@pytest.fixture()
def pool_store(db_path):
    return CodePoolStore(db_path=db_path, timeout=5.0)


@pytest.fixture()
def allocator(pool_store):
    return CodeAllocator(pool_store)


@pytest.fixture()
def classifier():
    return ListingClassifier.from_file(DEFAULT_RULES_PATH)
