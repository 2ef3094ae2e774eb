import base64
import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from inventory_sync.core.config import Settings, get_settings
from inventory_sync.integrations.events import OrderCompletedEvent, OrderLineItem
from inventory_sync.integrations.setup import SyncComponents

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

STOCK_TOPICS = {"product.updated", "product.created"}
ORDER_TOPICS = {"order.updated", "order.completed"}


def get_components(request: Request) -> SyncComponents:
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(status_code=503, detail="Sync components not initialised")
    return components


def compute_signature(secret: str, body: bytes) -> str:
    """WooCommerce signs the raw body with HMAC-SHA256 and base64-encodes the digest."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


async def verify_webhook_signature(request: Request, settings: Settings = Depends(get_settings)):
    """Verify the X-WC-Webhook-Signature header when a webhook secret is configured"""
    secret = settings.WOOCOMMERCE_WEBHOOK_SECRET
    if not secret:
        return

    signature = request.headers.get("X-WC-Webhook-Signature")
    if not signature:
        raise HTTPException(status_code=401, detail="No signature provided")

    body = await request.body()
    if not hmac.compare_digest(signature, compute_signature(secret, body)):
        raise HTTPException(status_code=401, detail="Invalid signature")


def order_event_from_payload(payload: dict) -> OrderCompletedEvent:
    items = []
    for line in payload.get("line_items") or []:
        if not line.get("product_id"):
            continue
        items.append(OrderLineItem(
            product_id=int(line["product_id"]),
            quantity=int(line.get("quantity") or 1),
            variation_id=int(line["variation_id"]) if line.get("variation_id") else None
        ))
    return OrderCompletedEvent(order_id=int(payload["id"]), status=payload.get("status", ""), items=items)


@router.post("/webhooks/woocommerce")
async def woocommerce_webhook(
    request: Request,
    components: SyncComponents = Depends(get_components),
    _: None = Depends(verify_webhook_signature)
):
    """Endpoint to receive product and order webhooks from WooCommerce"""
    topic = request.headers.get("X-WC-Webhook-Topic", "")
    body = await request.body()

    # WooCommerce pings a new webhook with a form-encoded body and no topic
    if not topic:
        return {"status": "ignored"}

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if not isinstance(payload, dict) or "id" not in payload:
        raise HTTPException(status_code=400, detail="Payload has no id")

    logger.info(f"Received WooCommerce webhook {topic} for id {payload.get('id')}")

    if topic in STOCK_TOPICS:
        if not payload.get("manage_stock") or payload.get("stock_quantity") is None:
            return {"status": "ignored", "topic": topic}
        results = await components.store.emit_stock_changed(int(payload["id"]), int(payload["stock_quantity"]))
        return {"status": "received", "topic": topic, "handlers": len(results)}

    if topic in ORDER_TOPICS:
        if payload.get("status") != "completed":
            return {"status": "ignored", "topic": topic}
        results = await components.store.emit_order_completed(order_event_from_payload(payload))
        return {"status": "received", "topic": topic, "handlers": len(results)}

    return {"status": "ignored", "topic": topic}
