import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from fulfillment_service.errors import FulfillmentError, MalformedNotification
from fulfillment_service.models import (
    AddCodesRequest,
    ConfigRequest,
    NotificationAck,
    PoolStats,
)
from fulfillment_service.notifications import is_xml_content_type, parse_order

logger = logging.getLogger(__name__)

router = APIRouter()

FAILURE_BODY = {"error": "Failed to process orders"}


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post("/config")
def set_config(config: ConfigRequest, request: Request) -> dict:
    if config.marketplace_timeout_s is not None:
        request.app.state.marketplace_timeout_s = config.marketplace_timeout_s
        request.app.state.dispatcher.timeout_s = config.marketplace_timeout_s
    return {"marketplace_timeout_s": request.app.state.marketplace_timeout_s}


@router.post("/notifications", response_model=NotificationAck)
async def receive_notification(request: Request):
    body = await request.body()
    try:
        if not is_xml_content_type(request.headers.get("content-type")):
            raise MalformedNotification("Invalid content type, expected XML")
        order = parse_order(body)
        # Store and marketplace calls block; keep them off the event loop.
        result = await run_in_threadpool(request.app.state.orchestrator.process, order)
    except FulfillmentError as exc:
        logger.error("Error processing the notification: kind=%s error=%s", exc.kind, exc)
        return JSONResponse(status_code=500, content=FAILURE_BODY)
    except Exception:
        logger.exception("Unexpected error processing the notification")
        return JSONResponse(status_code=500, content=FAILURE_BODY)

    return NotificationAck(message="Order processing started", order_id=result.order_id, state=result.state)


@router.post("/pool/codes")
def add_codes(payload: AddCodesRequest, request: Request) -> dict:
    try:
        added = request.app.state.pool_store.append_codes(payload.pool, payload.sub_range, payload.codes)
    except FulfillmentError as exc:
        logger.error("Could not add codes to %s!%s: %s", payload.pool, payload.sub_range, exc)
        return JSONResponse(status_code=503, content={"error": "Code pool unavailable"})
    return {"added": added}


@router.get("/pool/{pool}/stats", response_model=PoolStats)
def pool_stats(pool: str, sub_range: str, request: Request):
    try:
        return request.app.state.pool_store.stats(pool, sub_range)
    except FulfillmentError as exc:
        logger.error("Could not read stats for %s!%s: %s", pool, sub_range, exc)
        return JSONResponse(status_code=503, content={"error": "Code pool unavailable"})
