"""
FastAPI dependencies wiring request handlers to the process-wide clients.

The token cache, shortener, metafield store and email sender are built
once in the application lifespan and kept on app.state. Tests replace
any of these through app.dependency_overrides.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from activation_mailer.database.session import get_db_session
from activation_mailer.services.email_sender import EmailSender
from activation_mailer.services.fulfillment_flow import FulfillmentFlow
from activation_mailer.services.line_item_processor import LineItemProcessor
from activation_mailer.services.order_email_pipeline import OrderEmailPipeline
from activation_mailer.services.order_metafield_store import OrderMetafieldStore


def _app_component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Service not initialized: {name}",
        )
    return component


def get_line_item_processor(request: Request) -> LineItemProcessor:
    return LineItemProcessor(_app_component(request, "url_shortener"))


def get_metafield_store(request: Request) -> OrderMetafieldStore:
    return _app_component(request, "metafield_store")


def get_email_sender(request: Request) -> EmailSender:
    return _app_component(request, "email_sender")


def get_order_email_pipeline(
    db: Session = Depends(get_db_session),
    processor: LineItemProcessor = Depends(get_line_item_processor),
    metafield_store: OrderMetafieldStore = Depends(get_metafield_store),
    email_sender: EmailSender = Depends(get_email_sender),
) -> OrderEmailPipeline:
    return OrderEmailPipeline(db, processor, metafield_store, email_sender)


def get_fulfillment_flow(
    processor: LineItemProcessor = Depends(get_line_item_processor),
    metafield_store: OrderMetafieldStore = Depends(get_metafield_store),
) -> FulfillmentFlow:
    return FulfillmentFlow(processor, metafield_store)
