#!/usr/bin/env python3
"""
Send signed Shopify webhooks and Flow action requests to a local server.

Usage:
    # Start your server first
    uvicorn main:app --reload

    # Then run this script
    python scripts/send_webhook.py --event orders_paid --order-id 5001
    python scripts/send_webhook.py --event flow_fulfill
    python scripts/send_webhook.py --event invalid_signature
"""

import argparse
import base64
import hashlib
import hmac
import json
import os

import httpx

DEFAULT_SECRET = os.getenv("SHOPIFY_API_SECRET", "test_webhook_secret")
DEFAULT_BASE_URL = os.getenv("TEST_BASE_URL", "http://localhost:8000")
DEFAULT_SHOP_DOMAIN = "test-store.myshopify.com"


def generate_hmac(payload: bytes, secret: str) -> str:
    """Generate HMAC-SHA256 signature for webhook payload."""
    computed = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(computed).decode("utf-8")


def _print_response(response: httpx.Response) -> None:
    print(f"Response Status: {response.status_code}")
    print(f"Response Body: {response.text}")


def order_payload(order_id: int, email: str) -> dict:
    return {
        "id": order_id,
        "name": f"#{order_id}",
        "email": email,
        "processed_at": "2025-05-08T15:04:00Z",
        "created_at": "2025-05-08T15:03:00Z",
        "customer": {"id": 7001, "first_name": "Erika", "last_name": "Mustermann", "email": email},
        "line_items": [
            {"id": 11, "name": "Rückenprogramm", "title": "Rückenprogramm", "quantity": 1, "product_id": 9001},
            {"id": 12, "name": "Knieprogramm", "title": "Knieprogramm", "quantity": 2, "product_id": 9002},
        ],
        "total_price": "49.90",
        "currency": "EUR",
        "financial_status": "paid",
        "fulfillment_status": None,
    }


def send_orders_paid(args) -> httpx.Response:
    """Send a signed orders/paid webhook."""
    payload_bytes = json.dumps(order_payload(args.order_id, args.email)).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": "orders/paid",
        "X-Shopify-Shop-Domain": args.shop_domain,
        "X-Shopify-Hmac-Sha256": generate_hmac(payload_bytes, args.secret),
    }
    print(f"\nSending orders/paid for order {args.order_id} to {args.base_url}")
    response = httpx.post(
        f"{args.base_url}/api/webhooks/shopify/orders-paid",
        content=payload_bytes,
        headers=headers,
    )
    _print_response(response)
    return response


def send_invalid_signature(args) -> httpx.Response:
    """Send an orders/paid webhook with a bad signature; expects 401."""
    payload_bytes = json.dumps(order_payload(args.order_id, args.email)).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": "orders/paid",
        "X-Shopify-Shop-Domain": args.shop_domain,
        "X-Shopify-Hmac-Sha256": "invalid_signature_here",
    }
    print("\nSending orders/paid with an INVALID signature (should be rejected)")
    response = httpx.post(
        f"{args.base_url}/api/webhooks/shopify/orders-paid",
        content=payload_bytes,
        headers=headers,
    )
    _print_response(response)
    if response.status_code == 401:
        print("Correctly rejected invalid signature")
    else:
        print("WARNING: Invalid signature was NOT rejected")
    return response


def send_flow_order_email(args) -> httpx.Response:
    """Invoke the order-email Flow action."""
    body = {
        "shopify_domain": args.shop_domain,
        "properties": {"id": f"gid://shopify/Order/{args.order_id}"},
    }
    print(f"\nInvoking /flow-ext/order-email for order {args.order_id}")
    response = httpx.post(f"{args.base_url}/flow-ext/order-email", json=body, timeout=30.0)
    _print_response(response)
    return response


def send_flow_fulfill(args) -> httpx.Response:
    """Invoke the fulfill Flow action with the legacy comma-joined form."""
    body = {
        "shopify_domain": args.shop_domain,
        "properties": {
            "orderId": f"gid://shopify/Order/{args.order_id}",
            "lineItemsIDs": "11,12",
            "lineItemQuantities": "1,2",
            "lineItemLongUrls": "https://app.myoncare.care/activate?pathway=back,"
                                "https://app.myoncare.care/activate?pathway=knee",
            "lineItemsPics": "",
        },
    }
    print(f"\nInvoking /flow-ext/fulfill for order {args.order_id}")
    response = httpx.post(f"{args.base_url}/flow-ext/fulfill", json=body, timeout=30.0)
    _print_response(response)
    return response


EVENTS = {
    "orders_paid": send_orders_paid,
    "invalid_signature": send_invalid_signature,
    "flow_order_email": send_flow_order_email,
    "flow_fulfill": send_flow_fulfill,
}


def main():
    parser = argparse.ArgumentParser(description="Send test webhooks and Flow actions to a local server")
    parser.add_argument("--event", choices=list(EVENTS.keys()), default="orders_paid")
    parser.add_argument("--order-id", type=int, default=5001)
    parser.add_argument("--email", default="erika@example.com")
    parser.add_argument("--shop-domain", default=DEFAULT_SHOP_DOMAIN)
    parser.add_argument(
        "--secret",
        default=DEFAULT_SECRET,
        help="Webhook secret (default: SHOPIFY_API_SECRET env var or 'test_webhook_secret')",
    )
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)

    args = parser.parse_args()
    EVENTS[args.event](args)


if __name__ == "__main__":
    main()
