import logging

from fulfillment_service.allocator import CodeAllocator
from fulfillment_service.classifier import ListingClassifier
from fulfillment_service.dispatcher import MarketplaceDispatcher
from fulfillment_service.errors import FulfillmentError, StoreUnavailable
from fulfillment_service.ledger import IdempotencyLedger
from fulfillment_service.models import FulfillmentResult, FulfillmentState, Order, PaymentStatus

logger = logging.getLogger(__name__)


class FulfillmentOrchestrator:
    """Runs one order through classify, allocate, deliver, confirm and record.

    The ledger record is finalized last, after every buyer-visible side effect
    succeeded. Any failure before that releases the order's claim so the next
    notification for the same order can try again; codes already claimed for
    the order are reused on that retry.
    """

    def __init__(
        self,
        ledger: IdempotencyLedger,
        classifier: ListingClassifier,
        allocator: CodeAllocator,
        dispatcher: MarketplaceDispatcher,
    ):
        self.ledger = ledger
        self.classifier = classifier
        self.allocator = allocator
        self.dispatcher = dispatcher

    def _skip(self, order: Order, reason: str) -> FulfillmentResult:
        logger.info("Order %s skipped: %s", order.order_id, reason)
        return FulfillmentResult(order_id=order.order_id, state=FulfillmentState.SKIPPED, reason=reason)

    def _fail(self, order: Order, state: FulfillmentState, exc: FulfillmentError) -> None:
        logger.error(
            "Order %s failed after %s: kind=%s error=%s",
            order.order_id, state.value, exc.kind, exc,
        )

    def process(self, order: Order) -> FulfillmentResult:
        state = FulfillmentState.RECEIVED
        logger.info("Order %s %s", order.order_id, state.value)

        # A ledger error propagates from here: no allocation without a dedup answer.
        try:
            if self.ledger.has_processed(order.order_id):
                return self._skip(order, "already_processed")
            classification = self.classifier.classify(order.item_title)
        except FulfillmentError as exc:
            self._fail(order, state, exc)
            raise
        state = FulfillmentState.CLASSIFIED
        logger.info("Order %s %s as %s!%s", order.order_id, state.value, classification.pool, classification.sub_range)

        if order.payment_status != PaymentStatus.PAID:
            return self._skip(order, "unpaid")

        try:
            claim_token = self.ledger.try_claim(order.order_id)
        except StoreUnavailable as exc:
            self._fail(order, state, exc)
            raise
        if claim_token is None:
            return self._skip(order, "in_progress")

        try:
            codes = self.allocator.allocate(
                classification.pool, classification.sub_range, order.quantity, order.order_id
            )
            state = FulfillmentState.ALLOCATED
            logger.info("Order %s %s %d code(s)", order.order_id, state.value, len(codes))

            self.dispatcher.deliver(order.buyer_id, order.item_id, order.item_title, codes)
            state = FulfillmentState.NOTIFIED
            logger.info("Order %s %s, codes used: %s", order.order_id, state.value, ", ".join(codes))

            self.dispatcher.confirm_shipment(order.order_id, order.item_id, order.transaction_id)
            state = FulfillmentState.SHIPMENT_CONFIRMED
            logger.info("Order %s %s", order.order_id, state.value)

            self.ledger.mark_processed(order.order_id, claim_token)
        except FulfillmentError as exc:
            self._fail(order, state, exc)
            self._release(order, claim_token)
            raise
        except Exception:
            logger.exception("Order %s failed after %s: kind=unexpected", order.order_id, state.value)
            self._release(order, claim_token)
            raise

        state = FulfillmentState.RECORDED
        logger.info("Order %s %s", order.order_id, state.value)
        return FulfillmentResult(order_id=order.order_id, state=state, codes=codes)

    def _release(self, order: Order, claim_token: str) -> None:
        try:
            self.ledger.release(order.order_id, claim_token)
        except StoreUnavailable:
            logger.exception("Could not release claim for order %s; it expires after the claim TTL", order.order_id)
