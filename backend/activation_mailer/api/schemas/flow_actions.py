"""
Request and response schemas for the Shopify Flow actions.

Flow posts the action's configured properties under "properties" and
expects the result under "return_value".
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OrderEmailProperties(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[Union[str, int]] = Field(default=None, alias="orderId")
    lineItems: Optional[List[Dict[str, Any]]] = None


class OrderEmailFlowRequest(BaseModel):
    """Body of POST /flow-ext/order-email."""
    model_config = ConfigDict(extra="allow")

    properties: OrderEmailProperties = Field(default_factory=OrderEmailProperties)
    shop_id: Optional[Union[str, int]] = None
    shopify_domain: Optional[str] = None


class ErrorEntry(BaseModel):
    code: str
    message: str
    field: Optional[str] = None


class OrderEmailReturnValue(BaseModel):
    success: bool
    messageId: Optional[str] = None
    saved: Optional[bool] = None
    orderURLs: Optional[str] = None
    errorMessage: Optional[str] = None
    errors: Optional[List[ErrorEntry]] = None
