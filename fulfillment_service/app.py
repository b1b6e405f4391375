import logging

from fastapi import FastAPI

from common import db as common_db

from fulfillment_service import config
from fulfillment_service.allocator import CodeAllocator, CodePoolStore
from fulfillment_service.classifier import ListingClassifier
from fulfillment_service.dispatcher import MarketplaceDispatcher
from fulfillment_service.ledger import IdempotencyLedger
from fulfillment_service.orchestrator import FulfillmentOrchestrator
from fulfillment_service.routes import router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="FulfillmentService")


@app.on_event("startup")
def startup() -> None:
    common_db.init_db()
    app.state.marketplace_timeout_s = config.MARKETPLACE_TIMEOUT_S

    ledger = IdempotencyLedger(timeout=config.DB_TIMEOUT_S, claim_ttl_s=config.LEDGER_CLAIM_TTL_S)
    app.state.pool_store = CodePoolStore(timeout=config.DB_TIMEOUT_S)
    app.state.dispatcher = MarketplaceDispatcher(
        api_url=config.EBAY_API_URL,
        auth_token=config.EBAY_AUTH_TOKEN,
        app_name=config.EBAY_APP_NAME,
        dev_name=config.EBAY_DEV_NAME,
        cert_name=config.EBAY_CERT_NAME,
        site_id=config.EBAY_SITE_ID,
        compatibility_level=config.EBAY_COMPATIBILITY_LEVEL,
        timeout_s=app.state.marketplace_timeout_s,
    )
    app.state.orchestrator = FulfillmentOrchestrator(
        ledger=ledger,
        classifier=ListingClassifier.from_file(config.CLASSIFIER_RULES_PATH),
        allocator=CodeAllocator(app.state.pool_store),
        dispatcher=app.state.dispatcher,
    )
    logger.info("FulfillmentService ready, db=%s rules=%s", common_db.get_db_path(), config.CLASSIFIER_RULES_PATH)


app.include_router(router)
