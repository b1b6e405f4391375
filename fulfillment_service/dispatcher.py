import logging
import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape

import requests

from fulfillment_service import config
from fulfillment_service.errors import DeliveryFailed, FulfillmentError, ShipmentConfirmationFailed

logger = logging.getLogger(__name__)

EBAY_NS = "urn:ebay:apis:eBLBaseComponents"
OK_ACKS = {"Success", "Warning"}

MESSAGE_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<AddMemberMessageAAQToPartnerRequest xmlns="{ns}">
  <RequesterCredentials>
    <eBayAuthToken>{token}</eBayAuthToken>
  </RequesterCredentials>
  <ItemID>{item_id}</ItemID>
  <MemberMessage>
    <Subject>Message from Seller</Subject>
    <Body>{body}</Body>
    <QuestionType>General</QuestionType>
    <RecipientID>{buyer_id}</RecipientID>
  </MemberMessage>
</AddMemberMessageAAQToPartnerRequest>"""

COMPLETE_SALE_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<CompleteSaleRequest xmlns="{ns}">
  <RequesterCredentials>
    <eBayAuthToken>{token}</eBayAuthToken>
  </RequesterCredentials>
  <OrderID>{order_id}</OrderID>
  <Shipped>true</Shipped>
  <ItemID>{item_id}</ItemID>
  <TransactionID>{transaction_id}</TransactionID>
</CompleteSaleRequest>"""


def format_delivery_message(item_title: str, codes: list[str]) -> str:
    return f"Thanks for buying, here's your {item_title} code(s): {', '.join(codes)}"


def _ack(text: str) -> str | None:
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return None
    node = root.find(f"{{{EBAY_NS}}}Ack")
    if node is None:
        node = root.find("Ack")
    return node.text.strip() if node is not None and node.text else None


class MarketplaceDispatcher:
    """Sends the buyer message and the shipment confirmation to the Trading API."""

    def __init__(
        self,
        api_url: str = config.EBAY_API_URL,
        auth_token: str = config.EBAY_AUTH_TOKEN,
        app_name: str = config.EBAY_APP_NAME,
        dev_name: str = config.EBAY_DEV_NAME,
        cert_name: str = config.EBAY_CERT_NAME,
        site_id: str = config.EBAY_SITE_ID,
        compatibility_level: str = config.EBAY_COMPATIBILITY_LEVEL,
        timeout_s: float = config.MARKETPLACE_TIMEOUT_S,
    ):
        self.api_url = api_url
        self.auth_token = auth_token
        self.app_name = app_name
        self.dev_name = dev_name
        self.cert_name = cert_name
        self.site_id = site_id
        self.compatibility_level = compatibility_level
        self.timeout_s = timeout_s

    def _headers(self, call_name: str) -> dict:
        return {
            "Content-Type": "text/xml",
            "X-EBAY-API-CALL-NAME": call_name,
            "X-EBAY-API-SITEID": self.site_id,
            "X-EBAY-API-APP-NAME": self.app_name,
            "X-EBAY-API-DEV-NAME": self.dev_name,
            "X-EBAY-API-CERT-NAME": self.cert_name,
            "X-EBAY-API-COMPATIBILITY-LEVEL": self.compatibility_level,
        }

    def _call(self, call_name: str, xml_body: str, error: type[FulfillmentError]) -> None:
        try:
            resp = requests.post(
                self.api_url,
                data=xml_body.encode("utf-8"),
                headers=self._headers(call_name),
                timeout=self.timeout_s,
            )
        except requests.Timeout as exc:
            raise error(f"{call_name} timed out") from exc
        except requests.RequestException as exc:
            raise error(f"{call_name} request failed: {exc}") from exc

        logger.debug("%s response %s: %s", call_name, resp.status_code, resp.text)
        if not 200 <= resp.status_code < 300:
            raise error(f"{call_name} returned HTTP {resp.status_code}")

        ack = _ack(resp.text)
        if ack not in OK_ACKS:
            raise error(f"{call_name} was not acknowledged (Ack={ack})")

    def deliver(self, buyer_id: str, item_id: str, item_title: str, codes: list[str]) -> None:
        body = MESSAGE_TEMPLATE.format(
            ns=EBAY_NS,
            token=escape(self.auth_token),
            item_id=escape(item_id),
            body=escape(format_delivery_message(item_title, codes)),
            buyer_id=escape(buyer_id),
        )
        self._call("AddMemberMessageAAQToPartner", body, DeliveryFailed)
        logger.info("Message sent to buyer %s for item %s", buyer_id, item_id)

    def confirm_shipment(self, order_id: str, item_id: str, transaction_id: str) -> None:
        body = COMPLETE_SALE_TEMPLATE.format(
            ns=EBAY_NS,
            token=escape(self.auth_token),
            order_id=escape(order_id),
            item_id=escape(item_id),
            transaction_id=escape(transaction_id),
        )
        self._call("CompleteSale", body, ShipmentConfirmationFailed)
        logger.info("Shipping fulfillment created for order %s", order_id)
