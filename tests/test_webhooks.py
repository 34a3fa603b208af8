import base64
import hashlib
import hmac
import json
import logging

import pytest

from conftest import API_SECRET, SHOP
from embedded_app.main import create_app
from embedded_app.privacy import topic_key


def webhook_headers(raw: bytes, topic: str, secret: str = API_SECRET) -> dict:
    signature = base64.b64encode(hmac.new(secret.encode(), raw, hashlib.sha256).digest()).decode()
    return {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": signature,
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": SHOP,
        "X-Shopify-Webhook-Id": "wh-1",
    }


@pytest.mark.parametrize("topic", ["customers/data_request", "customers/redact", "shop/redact"])
@pytest.mark.asyncio
async def test_privacy_webhooks_accepted(client, topic, caplog):
    caplog.set_level(logging.INFO)
    raw = json.dumps({"shop_id": 1, "shop_domain": SHOP}).encode()

    response = await client.post("/api/webhooks", content=raw, headers=webhook_headers(raw, topic))

    assert response.status_code == 200
    assert topic in caplog.text


@pytest.mark.asyncio
async def test_bad_signature_is_401(client):
    raw = b'{"shop_id": 1}'
    headers = webhook_headers(raw, "shop/redact", secret="wrong")

    response = await client.post("/api/webhooks", content=raw, headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unregistered_topic_is_404(client):
    raw = b"{}"

    response = await client.post("/api/webhooks", content=raw, headers=webhook_headers(raw, "orders/create"))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_custom_handlers_receive_payload(config, token_store):
    from httpx import ASGITransport, AsyncClient

    received = []

    async def on_uninstall(topic, shop, payload, webhook_id):
        received.append((topic, shop, payload, webhook_id))

    app = create_app(config, token_store=token_store, webhook_handlers={"APP_UNINSTALLED": on_uninstall})
    raw = b'{"id": 9}'
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        response = await c.post("/api/webhooks", content=raw, headers=webhook_headers(raw, "app/uninstalled"))

    assert response.status_code == 200
    assert received == [("app/uninstalled", SHOP, {"id": 9}, "wh-1")]


def test_topic_key():
    assert topic_key("customers/data_request") == "CUSTOMERS_DATA_REQUEST"


@pytest.mark.asyncio
async def test_non_ascii_signature_is_401(client):
    raw = b'{"shop_id": 1}'
    headers = {**webhook_headers(raw, "shop/redact"), "X-Shopify-Hmac-Sha256": b"\xe9t\xe9"}

    response = await client.post("/api/webhooks", content=raw, headers=headers)

    assert response.status_code == 401
