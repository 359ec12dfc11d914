"""
Order confirmation pipeline for paid orders.

Runs one order through:

    validate -> dedupe check -> load order -> load customer
    -> line items & short URLs (best-effort, retried)
    -> persist metafield (best-effort)
    -> compose + send email -> audit log (best-effort)

Required stages raise OrderEmailError. Optional stages degrade to
fallback values and report a StageOutcome on the result, so the customer
still gets exactly one confirmation email when the shortener, catalog or
metafield writes are unavailable. The email send itself is never retried.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from activation_mailer.models.email_log import EmailStatus, failed_message_id
from activation_mailer.models.order import ShopifyOrder
from activation_mailer.models.shop import ShopifyShop
from activation_mailer.repositories.base_repo import ShopIsolationError
from activation_mailer.repositories.shop_records import (
    CustomerRepository,
    OrderRepository,
    ProductRepository,
    ShopRepository,
)
from activation_mailer.services.email_deduplication import EmailDeduplicationGate
from activation_mailer.services.email_sender import EmailMessage, EmailSender
from activation_mailer.services.line_item_processor import (
    LineItemProcessingResult,
    LineItemProcessor,
)
from activation_mailer.services.order_email_errors import (
    ErrorKind,
    OrderEmailError,
    StageOutcome,
)
from activation_mailer.services.order_items import LineItem, ShortUrlMapping
from activation_mailer.services.order_metafield_store import OrderMetafieldStore
from activation_mailer.templates.order_email import (
    OrderEmailData,
    format_date,
    generate_order_email_template,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Kunde"
DEFAULT_RETRY_ATTEMPTS = 2
DEFAULT_RETRY_DELAY_SECONDS = 1.0

_GID_PATTERN = re.compile(r"^gid://shopify/Order/(\d+)$")


def extract_numeric_id(gid_or_id: Any) -> str:
    """
    Return the numeric id of a Shopify id or GID.

    Raises:
        OrderEmailError(VALIDATION): neither a number nor a GID
    """
    value = str(gid_or_id).strip() if gid_or_id is not None else ""
    if value.isdigit():
        return value
    match = _GID_PATTERN.match(value)
    if match:
        return match.group(1)
    raise OrderEmailError.validation(f"Invalid order ID format: {value}", field="orderId")


@dataclass
class OrderEmailRequest:
    """
    One order to confirm.

    order_payload is the orders/paid webhook body when the order arrives
    by webhook. line_items is set by Flow callers that already resolved
    the items; items that carry a short_url are not shortened again.
    """
    order_id: Any
    shop_id: Optional[str] = None
    shop_domain: Optional[str] = None
    order_payload: Optional[Dict[str, Any]] = None
    line_items: Optional[List[LineItem]] = None
    source: str = "webhook"


@dataclass
class OrderSnapshot:
    """Order fields the pipeline needs, from the record store or the event."""
    id: str
    name: str
    email: Optional[str]
    processed_at: Any = None
    created_at: Any = None
    customer_id: Optional[str] = None
    customer: Dict[str, Any] = field(default_factory=dict)
    total_price: Optional[str] = None
    currency: Optional[str] = None
    raw_line_items: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_record(cls, order: ShopifyOrder, payload: Optional[Dict[str, Any]] = None) -> "OrderSnapshot":
        payload = payload or {}
        return cls(
            id=str(order.id),
            name=order.name or payload.get("name") or "",
            email=order.email or payload.get("email"),
            processed_at=order.processed_at or payload.get("processed_at"),
            created_at=order.shopify_created_at or payload.get("created_at"),
            customer_id=order.customer_id or _customer_id(payload),
            customer=payload.get("customer") or {},
            total_price=order.total_price or payload.get("total_price"),
            currency=order.currency or payload.get("currency"),
            raw_line_items=payload.get("line_items") or order.line_items or [],
        )

    @classmethod
    def from_payload(cls, order_id: str, payload: Dict[str, Any]) -> "OrderSnapshot":
        return cls(
            id=order_id,
            name=payload.get("name") or "",
            email=payload.get("email"),
            processed_at=payload.get("processed_at"),
            created_at=payload.get("created_at"),
            customer_id=_customer_id(payload),
            customer=payload.get("customer") or {},
            total_price=payload.get("total_price"),
            currency=payload.get("currency"),
            raw_line_items=payload.get("line_items") or [],
        )


def _customer_id(payload: Dict[str, Any]) -> Optional[str]:
    customer = payload.get("customer") or {}
    customer_id = customer.get("id")
    return str(customer_id) if customer_id is not None else None


@dataclass
class OrderEmailResult:
    """Outcome of a pipeline run that sent the confirmation email."""
    success: bool
    order_id: str
    order_name: str
    customer_email: str
    message_id: Optional[str] = None
    email_sent: bool = False
    url_processing_succeeded: bool = False
    short_urls: List[ShortUrlMapping] = field(default_factory=list)
    line_items: List[LineItem] = field(default_factory=list)
    metafield: Optional[StageOutcome] = None
    audit_log: Optional[StageOutcome] = None
    total_price: Optional[str] = None
    currency: Optional[str] = None
    processing_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "orderId": self.order_id,
            "orderName": self.order_name,
            "customerEmail": self.customer_email,
            "messageId": self.message_id,
            "emailSent": self.email_sent,
            "urlProcessingSucceeded": self.url_processing_succeeded,
            "shortUrls": [m.to_dict() for m in self.short_urls],
            "metafield": self.metafield.to_dict() if self.metafield else None,
            "auditLog": self.audit_log.to_dict() if self.audit_log else None,
            "totalPrice": self.total_price,
            "currency": self.currency,
            "processingTimeMs": self.processing_time_ms,
        }


class StageTimer:
    """Logs per-stage and total elapsed time at DEBUG."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self.start = clock()
        self.last_step = self.start

    def step(self, stage: str) -> None:
        now = self._clock()
        logger.debug(
            "Stage completed",
            extra={
                "stage": stage,
                "stage_elapsed_ms": int((now - self.last_step) * 1000),
                "total_elapsed_ms": int((now - self.start) * 1000),
            },
        )
        self.last_step = now

    @property
    def elapsed_ms(self) -> int:
        return int((self._clock() - self.start) * 1000)


class OrderEmailPipeline:
    """Sends the activation-link confirmation email for one paid order."""

    def __init__(
        self,
        db_session: Session,
        processor: LineItemProcessor,
        metafield_store: OrderMetafieldStore,
        email_sender: EmailSender,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db_session
        self.processor = processor
        self.metafield_store = metafield_store
        self.email_sender = email_sender
        self.dedup = EmailDeduplicationGate(db_session)
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

    async def run(self, request: OrderEmailRequest) -> OrderEmailResult:
        """
        Run the pipeline for one order.

        Raises:
            OrderEmailError: for validation, authentication, not found,
                duplicate, configuration and mailer failures
        """
        timer = StageTimer()

        order_id = self._validate(request)
        shop = self._load_shop(request)
        logger.info(
            "Processing order email",
            extra={"order_id": order_id, "shop_id": shop.id, "source": request.source},
        )
        timer.step("validate")

        self.dedup.assert_not_sent(order_id, shop.id)
        timer.step("dedupe_check")

        order = self._load_order(shop, order_id, request)
        timer.step("load_order")

        customer_email, customer_name = self._load_customer(shop, order)
        timer.step("load_customer")

        line_items = self._build_line_items(shop, order, request)
        timer.step("load_line_items")

        line_items, mappings, url_ok, metafield = await self._shorten_and_save(shop, order, line_items)
        timer.step("shorten_and_save")

        template = generate_order_email_template(
            OrderEmailData(
                order_number=order.name or f"#{order.id}",
                order_date=format_date(order.processed_at or order.created_at),
                customer_name=customer_name,
                items=line_items,
            )
        )

        message_id = await self._send(shop, order, customer_email, template.subject, template.html)
        timer.step("send_email")

        audit_log = self.dedup.record(order.id, shop.id, customer_email, message_id, EmailStatus.SENT)
        if not audit_log.ok:
            logger.warning(
                "Email sent but audit log entry was not written",
                extra={"order_id": order.id, "message_id": message_id, "error": audit_log.error},
            )
        timer.step("audit_log")

        result = OrderEmailResult(
            success=True,
            order_id=order.id,
            order_name=order.name,
            customer_email=customer_email,
            message_id=message_id,
            email_sent=True,
            url_processing_succeeded=url_ok,
            short_urls=mappings,
            line_items=line_items,
            metafield=metafield,
            audit_log=audit_log,
            total_price=order.total_price,
            currency=order.currency,
            processing_time_ms=timer.elapsed_ms,
        )
        logger.info(
            "Order email processing completed",
            extra={
                "order_id": order.id,
                "message_id": message_id,
                "url_processing_succeeded": url_ok,
                "metafield_saved": metafield.ok,
                "processing_time_ms": result.processing_time_ms,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Required stages
    # ------------------------------------------------------------------

    def _validate(self, request: OrderEmailRequest) -> str:
        if request.order_id is None or request.order_id == "":
            raise OrderEmailError.validation("Missing orderId in request", field="orderId")
        order_id = extract_numeric_id(request.order_id)

        if request.order_payload is not None:
            line_items = request.order_payload.get("line_items")
            if not isinstance(line_items, list):
                raise OrderEmailError.validation("Missing line_items in order payload", field="line_items")
            if not all(isinstance(raw, dict) for raw in line_items):
                raise OrderEmailError.validation("Malformed entry in line_items", field="line_items")
        return order_id

    def _load_shop(self, request: OrderEmailRequest) -> ShopifyShop:
        if not request.shop_id and not request.shop_domain:
            raise OrderEmailError.authentication("No active shop session found")

        shop = ShopRepository(self.db).resolve(request.shop_id, request.shop_domain)
        if shop is None:
            logger.error(
                "Shop record not found",
                extra={"shop_id": request.shop_id, "shop_domain": request.shop_domain},
            )
            raise OrderEmailError.authentication("Shop record not found")
        if request.shop_id and str(request.shop_id) != str(shop.id):
            raise OrderEmailError.authentication("Shop id does not match shop domain")
        return shop

    def _load_order(self, shop: ShopifyShop, order_id: str, request: OrderEmailRequest) -> OrderSnapshot:
        try:
            record = OrderRepository(self.db, shop.id).get_owned(order_id)
        except ShopIsolationError:
            raise OrderEmailError.authentication("Order does not belong to the authenticated shop")

        if record is not None:
            return OrderSnapshot.from_record(record, request.order_payload)
        if request.order_payload is not None:
            return OrderSnapshot.from_payload(order_id, request.order_payload)
        raise OrderEmailError.not_found(f"Order with ID {order_id} not found")

    def _load_customer(self, shop: ShopifyShop, order: OrderSnapshot):
        customer = None
        if order.customer_id:
            try:
                customer = CustomerRepository(self.db, shop.id).get_by_id(order.customer_id)
            except SQLAlchemyError as e:
                logger.warning(
                    "Failed to lookup customer, continuing without customer record",
                    extra={"order_id": order.id, "customer_id": order.customer_id, "error": str(e)},
                )

        payload_customer = order.customer or {}
        customer_email = (
            order.email
            or (customer.email if customer else None)
            or payload_customer.get("email")
        )
        if not customer_email:
            raise OrderEmailError.validation(
                f"No email address found for order {order.name or order.id}",
                field="email",
            )

        if customer is not None and customer.display_name:
            customer_name = customer.display_name
        else:
            parts = [payload_customer.get("first_name"), payload_customer.get("last_name")]
            customer_name = " ".join(p for p in parts if p) or DEFAULT_CUSTOMER_NAME
        return customer_email, customer_name

    async def _send(self, shop: ShopifyShop, order: OrderSnapshot, to_email: str, subject: str, html: str) -> str:
        message = EmailMessage(to_email=to_email, subject=subject, html_body=html)
        try:
            sent = await self.email_sender.send(message)
        except OrderEmailError as e:
            if e.kind is ErrorKind.MAILER:
                self._record_failed_send(shop, order, to_email, str(e))
            raise
        except Exception as e:
            logger.error(
                "Unexpected error sending order email",
                extra={"order_id": order.id, "error": str(e)},
                exc_info=True,
            )
            self._record_failed_send(shop, order, to_email, str(e))
            raise OrderEmailError.mailer(f"Failed to send email: {e}")
        return sent.message_id

    def _record_failed_send(self, shop: ShopifyShop, order: OrderSnapshot, to_email: str, error: str) -> None:
        logger.error(
            "Failed to send order confirmation email",
            extra={"order_id": order.id, "customer_email": to_email, "error": error},
        )
        self.dedup.record(order.id, shop.id, to_email, failed_message_id(), EmailStatus.FAILED)

    # ------------------------------------------------------------------
    # Best-effort stages
    # ------------------------------------------------------------------

    def _build_line_items(self, shop: ShopifyShop, order: OrderSnapshot, request: OrderEmailRequest) -> List[LineItem]:
        if request.line_items is not None:
            return list(request.line_items)

        products = ProductRepository(self.db, shop.id)
        items = []
        for raw in order.raw_line_items:
            item_id = str(raw.get("id", ""))
            name = raw.get("name") or raw.get("title") or ""
            quantity = raw.get("quantity", 1)
            product_id = raw.get("product_id")

            if not product_id:
                logger.warning(
                    "Line item has no valid product_id, skipping product data fetch",
                    extra={"line_item_id": item_id, "line_item_name": name},
                )
                items.append(LineItem(id=item_id, name=name or "Custom Item", quantity=quantity))
                continue

            try:
                product = products.get_by_id(str(product_id))
            except SQLAlchemyError as e:
                logger.warning(
                    "Failed to fetch product data for line item, using fallback",
                    extra={"line_item_id": item_id, "product_id": product_id, "error": str(e)},
                )
                product = None

            items.append(LineItem(
                id=item_id,
                name=name or (product.title if product else "") or "Unknown Product",
                quantity=quantity,
                image=(product.featured_image_url or "") if product else "",
                long_url=(product.pathway_longurl or "") if product else "",
            ))
        return items

    async def _process_with_retry(self, items: List[LineItem]) -> LineItemProcessingResult:
        result = await self.processor.process(items)
        attempt = 1
        while not result.success and attempt < self.retry_attempts:
            delay = self.retry_delay_seconds * attempt
            logger.warning(
                "Line item processing aborted, retrying",
                extra={"attempt": attempt, "delay_seconds": delay},
            )
            await self._sleep(delay)
            attempt += 1
            result = await self.processor.process(items)
        return result

    async def _shorten_and_save(self, shop: ShopifyShop, order: OrderSnapshot, line_items: List[LineItem]):
        """
        Returns:
            (line items for the email, saved mappings, url processing ok, metafield outcome)
        """
        pending_positions = [i for i, item in enumerate(line_items) if not item.short_url]
        if not pending_positions:
            return line_items, [], True, StageOutcome.skip("metafield", "no_new_short_urls")

        pending = [line_items[i] for i in pending_positions]
        try:
            processing = await self._process_with_retry(pending)
            mappings = processing.to_mappings() if processing.success else []
        except Exception as e:
            logger.warning(
                "URL processing raised, continuing with email using original line items",
                extra={"order_id": order.id, "error": str(e)},
                exc_info=True,
            )
            return line_items, [], False, StageOutcome.failure("metafield", "url_processing_failed")

        if not processing.success:
            logger.warning(
                "URL processing failed, continuing with email using original line items",
                extra={"order_id": order.id, "attempts": self.retry_attempts},
            )
            return line_items, [], False, StageOutcome.failure("metafield", "url_processing_failed")

        merged = list(line_items)
        for position, item in zip(pending_positions, processing.line_items):
            merged[position] = item

        if not mappings:
            return merged, [], True, StageOutcome.skip("metafield", "no_short_urls")

        try:
            saved = await self.metafield_store.save(shop.domain, order.id, mappings, access_token=shop.access_token)
        except Exception as e:
            logger.warning(
                "Failed to save order metafield, continuing with email processing",
                extra={"order_id": order.id, "error": str(e)},
            )
            return merged, mappings, True, StageOutcome.failure("metafield", str(e))

        if not saved.save_success:
            logger.warning(
                "Failed to save short URL mapping as order metafield",
                extra={"order_id": order.id, "error": saved.error},
            )
            return merged, mappings, True, StageOutcome.failure("metafield", saved.error or "save_failed")
        return merged, mappings, True, StageOutcome.success("metafield")
