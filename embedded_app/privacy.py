"""
Mandatory GDPR webhooks. This app stores no customer data, so each handler only logs.

https://shopify.dev/docs/apps/webhooks/configuration/mandatory-webhooks
"""
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

WebhookHandler = Callable[[str, str, dict, str], Awaitable[None]]


async def customers_data_request(topic: str, shop: str, payload: dict, webhook_id: str) -> None:
    # Payload: shop_id, shop_domain, orders_requested, customer{id,email,phone}, data_request{id}
    log.info("%s from %s (webhook %s): %s", topic, shop, webhook_id, payload)


async def customers_redact(topic: str, shop: str, payload: dict, webhook_id: str) -> None:
    # Payload: shop_id, shop_domain, customer{id,email,phone}, orders_to_redact
    log.info("%s from %s (webhook %s): %s", topic, shop, webhook_id, payload)


async def shop_redact(topic: str, shop: str, payload: dict, webhook_id: str) -> None:
    # Sent 48 hours after uninstall. Payload: shop_id, shop_domain
    log.info("%s from %s (webhook %s): %s", topic, shop, webhook_id, payload)


PRIVACY_WEBHOOK_HANDLERS: dict[str, WebhookHandler] = {
    "CUSTOMERS_DATA_REQUEST": customers_data_request,
    "CUSTOMERS_REDACT": customers_redact,
    "SHOP_REDACT": shop_redact,
}


def topic_key(topic: str) -> str:
    """customers/data_request -> CUSTOMERS_DATA_REQUEST"""
    return topic.strip().replace("/", "_").upper()
