"""
Shopify webhook handlers for order events.

SECURITY: All webhooks MUST verify HMAC signature before processing.
Shopify signs webhooks with the app's API secret.

Business failures are acknowledged with 200 and a structured body so that
Shopify does not redeliver an order whose email was already handled or
can never be sent. Only signature and framing problems return 4xx.

Documentation: https://shopify.dev/docs/apps/webhooks/configuration/https
"""

import os
import hmac
import hashlib
import base64
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel

from activation_mailer.api.dependencies import get_order_email_pipeline
from activation_mailer.services.order_email_errors import OrderEmailError
from activation_mailer.services.order_email_pipeline import OrderEmailPipeline, OrderEmailRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks/shopify", tags=["webhooks"])

WEBHOOK_TOPIC_ORDERS_PAID = "orders/paid"


class WebhookResponse(BaseModel):
    """Order webhook acknowledgement."""
    received: bool = True
    success: bool = True
    message: str = "Webhook processed"
    messageId: Optional[str] = None
    errorCode: Optional[str] = None


def verify_shopify_webhook(data: bytes, hmac_header: str, api_secret: str) -> bool:
    """
    Verify Shopify webhook HMAC signature.

    Args:
        data: Raw request body bytes
        hmac_header: X-Shopify-Hmac-Sha256 header value
        api_secret: Shopify app API secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not hmac_header or not api_secret:
        return False

    computed_hmac = hmac.new(api_secret.encode("utf-8"), data, hashlib.sha256)
    computed_digest = base64.b64encode(computed_hmac.digest()).decode("utf-8")

    # Constant-time comparison
    return hmac.compare_digest(computed_digest, hmac_header)


async def get_verified_webhook_body(request: Request) -> tuple[dict, str]:
    """
    Get and verify webhook body with HMAC signature.

    Returns:
        Tuple of (parsed body dict, shop domain)

    Raises:
        HTTPException: If verification fails
    """
    hmac_header = request.headers.get("X-Shopify-Hmac-Sha256")
    if not hmac_header:
        logger.warning("Missing HMAC header in webhook")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing HMAC signature"
        )

    shop_domain = request.headers.get("X-Shopify-Shop-Domain")
    if not shop_domain:
        logger.warning("Missing shop domain header in webhook")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing shop domain"
        )

    api_secret = os.getenv("SHOPIFY_API_SECRET")
    if not api_secret:
        logger.error("SHOPIFY_API_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook verification not configured"
        )

    body = await request.body()

    if not verify_shopify_webhook(body, hmac_header, api_secret):
        logger.warning("Invalid webhook HMAC", extra={"shop_domain": shop_domain})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid HMAC signature"
        )

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        logger.error("Invalid JSON in webhook body")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON body"
        )
    if not isinstance(data, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body must be a JSON object"
        )

    return data, shop_domain


@router.post("/orders-paid", response_model=WebhookResponse, response_model_exclude_none=True)
async def handle_orders_paid(
    request: Request,
    pipeline: OrderEmailPipeline = Depends(get_order_email_pipeline),
    x_shopify_topic: Optional[str] = Header(None, alias="X-Shopify-Topic"),
):
    """
    Handle orders/paid webhook from Shopify.

    Sends the activation-link confirmation email for the order, at most
    once per order and shop.

    SECURITY: Verifies HMAC signature before processing.
    """
    data, shop_domain = await get_verified_webhook_body(request)

    logger.info("Order paid webhook received", extra={
        "shop_domain": shop_domain,
        "topic": x_shopify_topic,
        "order_id": data.get("id"),
        "order_name": data.get("name"),
    })

    try:
        result = await pipeline.run(OrderEmailRequest(
            order_id=data.get("id"),
            shop_domain=shop_domain,
            order_payload=data,
            source="webhook",
        ))
    except OrderEmailError as e:
        logger.warning("Order email not sent", extra={
            "shop_domain": shop_domain,
            "order_id": data.get("id"),
            "error_code": e.code,
            "error": e.message,
        })
        return WebhookResponse(success=False, message=e.message, errorCode=e.code)
    except Exception as e:
        logger.error("Error processing order paid webhook", extra={
            "shop_domain": shop_domain,
            "order_id": data.get("id"),
            "error": str(e),
        }, exc_info=True)
        return WebhookResponse(success=False, message="Internal server error", errorCode="server_error")

    return WebhookResponse(
        message="Order confirmation email sent",
        messageId=result.message_id,
    )
