import logging
import xml.etree.ElementTree as ET

from pydantic import ValidationError

from fulfillment_service.errors import MalformedNotification
from fulfillment_service.models import Order, PaymentStatus

logger = logging.getLogger(__name__)

UNPAID_STATUSES = {
    "PaymentPending",
    "PaymentInProcess",
    "PayPalPaymentInProcess",
    "BuyerECheckBounced",
    "BuyerCreditCardFailed",
    "BuyerFailedPaymentReportedBySeller",
}


def is_xml_content_type(content_type: str | None) -> bool:
    return bool(content_type) and "xml" in content_type.lower()


def payment_status_from_ebay(value: str) -> PaymentStatus:
    if value == "NoPaymentFailure":
        return PaymentStatus.PAID
    if value in UNPAID_STATUSES:
        return PaymentStatus.UNPAID
    return PaymentStatus.OTHER


def _strip_namespaces(root: ET.Element) -> None:
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.rsplit("}", 1)[1]


def _text(parent: ET.Element, path: str) -> str:
    node = parent.find(path)
    if node is None or node.text is None or not node.text.strip():
        raise MalformedNotification(f"Notification is missing {path}")
    return node.text.strip()


def parse_order(body: bytes | str) -> Order:
    """Pull the order fields out of a GetItemTransactions notification envelope."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise MalformedNotification(f"Notification is not valid XML: {exc}") from exc
    _strip_namespaces(root)

    response = root.find("Body/GetItemTransactionsResponse")
    if response is None:
        raise MalformedNotification("Notification has no GetItemTransactionsResponse")

    transaction = response.find("TransactionArray/Transaction")
    if transaction is None:
        raise MalformedNotification("Notification has no Transaction")

    quantity = _text(transaction, "QuantityPurchased")
    try:
        quantity = int(quantity)
    except ValueError as exc:
        raise MalformedNotification(f"QuantityPurchased is not an integer: {quantity!r}") from exc

    try:
        order = Order(
            order_id=_text(transaction, "ContainingOrder/OrderID"),
            transaction_id=_text(transaction, "TransactionID"),
            item_id=_text(response, "Item/ItemID"),
            item_title=_text(response, "Item/Title"),
            buyer_id=_text(transaction, "Buyer/UserID"),
            payment_status=payment_status_from_ebay(_text(transaction, "Status/eBayPaymentStatus")),
            quantity=quantity,
        )
    except ValidationError as exc:
        raise MalformedNotification(f"Notification fields are invalid: {exc}") from exc

    logger.info("Parsed notification %s", order.model_dump())
    return order
