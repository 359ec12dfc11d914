"""
Shopify Flow action endpoints.

POST /flow-ext/order-email  - send the activation-link confirmation email
POST /flow-ext/fulfill      - shorten a batch of line items and save the mapping

Flow reads the result from "return_value". Pipeline error kinds map to
HTTP status codes through ERROR_HTTP_STATUS; stack traces never leave
the service.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from activation_mailer.api.dependencies import get_fulfillment_flow, get_order_email_pipeline
from activation_mailer.api.schemas.flow_actions import (
    ErrorEntry,
    OrderEmailFlowRequest,
    OrderEmailReturnValue,
)
from activation_mailer.services.fulfillment_flow import FulfillmentFlow, FulfillmentFlowRequest
from activation_mailer.services.order_email_errors import OrderEmailError
from activation_mailer.services.order_email_pipeline import OrderEmailPipeline, OrderEmailRequest
from activation_mailer.services.order_items import LineItem
from activation_mailer.services.order_metafield_store import serialize_mappings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flow-ext", tags=["flow"])


def _error_response(error: OrderEmailError) -> JSONResponse:
    value = OrderEmailReturnValue(
        success=False,
        errorMessage=error.message,
        errors=[ErrorEntry(**error.to_dict())],
    )
    return JSONResponse(
        status_code=error.http_status,
        content={"return_value": value.model_dump(exclude_none=True)},
    )


@router.post("/order-email")
async def order_email_action(
    body: OrderEmailFlowRequest,
    pipeline: OrderEmailPipeline = Depends(get_order_email_pipeline),
):
    """Send the order confirmation email with activation links for one order."""
    properties = body.properties
    line_items = None
    if properties.lineItems:
        line_items = [LineItem.from_dict(record) for record in properties.lineItems]

    request = OrderEmailRequest(
        order_id=properties.id,
        shop_id=str(body.shop_id) if body.shop_id is not None else None,
        shop_domain=body.shopify_domain,
        line_items=line_items,
        source="flow",
    )

    try:
        result = await pipeline.run(request)
    except OrderEmailError as e:
        logger.warning(
            "Order email flow action failed",
            extra={"order_id": properties.id, "error_code": e.code, "error": e.message},
        )
        return _error_response(e)
    except Exception as e:
        logger.error(
            "Unexpected error in order email flow action",
            extra={"order_id": properties.id, "error": str(e)},
            exc_info=True,
        )
        return _error_response(OrderEmailError.internal("Internal server error"))

    value = OrderEmailReturnValue(
        success=result.success,
        messageId=result.message_id,
        saved=result.metafield.ok if result.metafield else False,
        orderURLs=serialize_mappings(result.short_urls),
    )
    return {"return_value": value.model_dump(exclude_none=True)}


@router.post("/fulfill")
async def fulfill_action(
    body: Dict[str, Any] = Body(...),
    flow: FulfillmentFlow = Depends(get_fulfillment_flow),
):
    """Shorten every line item of an order and store the mapping as a metafield."""
    try:
        request = FulfillmentFlowRequest.from_flow(body)
        result = await flow.process(request)
    except OrderEmailError as e:
        logger.warning("Fulfillment flow action rejected", extra={"error": e.message})
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"return_value": {
                "success": False,
                "saved": False,
                "lineItems": [],
                "orderURLs": "",
                "errorMessage": e.message,
                "errors": [e.to_dict()],
            }},
        )
    except Exception as e:
        logger.error("Error processing fulfillment flow action", extra={"error": str(e)}, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"return_value": {
                "success": False,
                "saved": False,
                "shortUrl": "",
                "lineItemId": "",
                "errorMessage": "Unknown error processing webhook",
            }},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST,
        content={"return_value": result.to_return_value()},
    )
