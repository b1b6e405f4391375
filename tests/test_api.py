from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import ebay_response, make_notification

from fulfillment_service.app import app

XML = {"Content-Type": "text/xml"}


@pytest.fixture()
def client(db_path):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def marketplace():
    with patch("fulfillment_service.dispatcher.requests.post", return_value=ebay_response()) as post:
        yield post


def load_codes(client, codes, pool="Game1", sub_range="A:B"):
    resp = client.post("/pool/codes", json={"pool": pool, "sub_range": sub_range, "codes": codes})
    assert resp.status_code == 200
    return resp


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_config_updates_timeout(client):
    resp = client.post("/config", json={"marketplace_timeout_s": 0.5})
    assert resp.json() == {"marketplace_timeout_s": 0.5}
    assert app.state.dispatcher.timeout_s == 0.5


def test_pool_codes_and_stats(client):
    assert load_codes(client, ["c1", "c2"]).json() == {"added": 2}

    resp = client.get("/pool/Game1/stats", params={"sub_range": "A:B"})

    assert resp.json() == {"pool": "Game1", "sub_range": "A:B", "total": 2, "claimed": 0, "available": 2}


def test_paid_notification_is_fulfilled_once(client, marketplace):
    load_codes(client, ["c1", "c2", "c3"])

    first = client.post("/notifications", content=make_notification(quantity="2"), headers=XML)
    second = client.post("/notifications", content=make_notification(quantity="2"), headers=XML)

    assert first.status_code == 200
    assert first.json() == {"message": "Order processing started", "order_id": "ord-1", "state": "recorded"}
    assert second.json()["state"] == "skipped"
    # One buyer message plus one shipment confirmation.
    assert marketplace.call_count == 2
    stats = client.get("/pool/Game1/stats", params={"sub_range": "A:B"}).json()
    assert stats["claimed"] == 2


def test_unpaid_notification_is_skipped(client, marketplace):
    load_codes(client, ["c1"])

    resp = client.post("/notifications", content=make_notification(payment_status="PaymentPending"), headers=XML)

    assert resp.status_code == 200
    assert resp.json()["state"] == "skipped"
    marketplace.assert_not_called()


def test_wrong_content_type_fails(client, marketplace):
    resp = client.post("/notifications", content=make_notification(), headers={"Content-Type": "application/json"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process orders"}
    marketplace.assert_not_called()


def test_malformed_envelope_fails(client):
    resp = client.post("/notifications", content="<Envelope/>", headers=XML)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process orders"}


def test_out_of_codes_reports_generic_failure(client, marketplace):
    resp = client.post("/notifications", content=make_notification(), headers=XML)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process orders"}
    marketplace.assert_not_called()


def test_delivery_failure_reports_generic_failure(client):
    load_codes(client, ["c1"])
    with patch("fulfillment_service.dispatcher.requests.post", return_value=ebay_response(ack="Failure")):
        resp = client.post("/notifications", content=make_notification(), headers=XML)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process orders"}


def test_reposting_codes_skips_duplicates(client):
    load_codes(client, ["c1", "c2"])
    assert load_codes(client, ["c1", "c2"]).json() == {"added": 0}

    stats = client.get("/pool/Game1/stats", params={"sub_range": "A:B"}).json()
    assert stats["total"] == 2


def test_unexpected_error_reports_generic_failure(client):
    load_codes(client, ["c1"])
    with patch("fulfillment_service.dispatcher.requests.post", side_effect=RuntimeError("boom")):
        resp = client.post("/notifications", content=make_notification(), headers=XML)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process orders"}
    assert app.state.orchestrator.ledger.try_claim("ord-1") is not None
