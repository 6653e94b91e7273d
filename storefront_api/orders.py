# storefront_api/orders.py
"""
Order lifecycle: placement, owner and public reads, progress transitions, deletion.

Every owner-only operation takes the caller's user id explicitly and checks it
against the order's ``site_owner``. Errors are raised as HTTPException and
rendered into the response envelope by the application.
"""

import json
import logging
import re
import secrets
import string
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from storefront_api import media
from storefront_api.models import (
    Landing, LineItemRead, Order, OrderCreate, OrderProgressUpdate, OrderRead,
    Payment, PaymentAccountRead, PaymentDetails, PaymentType, Product,
    ProductSummary, Progress, utcnow,
)
from storefront_api.utils import parse_id, require_id


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


ORDER_CODE_LENGTH = 7
ORDER_CODE_ALPHABET = string.ascii_uppercase + string.digits
ORDER_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{ORDER_CODE_LENGTH}}}$")
MAX_CODE_ATTEMPTS = 20

# payment detail keys hidden from the public order lookup
PRIVATE_PAYMENT_FIELDS = ("accountId", "paymentPlatformUserName", "internalNote")


@dataclass
class CashOnDelivery:
    payment_type: PaymentType = PaymentType.COD

    def stored_details(self) -> dict:
        return {}

    @property
    def screenshots(self) -> list[str]:
        return []


@dataclass
class Prepaid:
    details: PaymentDetails
    screenshots: list[str] = field(default_factory=list)
    payment_type: PaymentType = PaymentType.PREPAID

    def stored_details(self) -> dict:
        return self.details.model_dump(by_alias=True, mode="json", exclude_none=True)


@dataclass
class LineItem:
    product_id: uuid.UUID
    quantity: int


def decode_json_field(raw: Any) -> Any:
    """Multipart forms carry nested values as JSON text; undecodable text becomes None."""
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_line_items(raw: Any) -> list[LineItem]:
    if not isinstance(raw, list) or not raw:
        raise HTTPException(status_code=400, detail="At least one product is required.")

    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise HTTPException(status_code=400, detail="Invalid product or quantity.")
        product_id = parse_id(entry.get("productId"))
        quantity = entry.get("quantity")
        # bool is an int subclass
        if product_id is None or isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise HTTPException(status_code=400, detail="Invalid product or quantity.")
        items.append(LineItem(product_id=product_id, quantity=quantity))
    return items


def unit_price(product: Product) -> float:
    discount = product.discount_price if product.discount_price and product.discount_price > 0 else 0
    return max(product.price - discount, 0)


# ------------------------------ Placement ------------------------------

def place_order(session: Session, order: OrderCreate, screenshots: list[UploadFile]|None = None) -> Order:
    """
    Validate a customer's cart against the store and persist it as a pending order.

    Checks run in a fixed order and the first failure is returned: line items,
    required fields, store payment acceptance, product lookup and pricing, then
    (Prepaid only) screenshots and payment details. Screenshot files written for a
    rejected request are removed before the error propagates.
    """
    items = parse_line_items(order.products)

    required = (order.address, order.phone_primary, order.payment_type, order.site_owner, order.order_name)
    if any(_is_blank(value) for value in required):
        raise HTTPException(status_code=400, detail="Missing required fields.")

    payment_type = order.payment_type.strip()
    site_owner = require_id(order.site_owner)

    landing = session.exec(select(Landing).where(Landing.owner_id == site_owner)).first()
    if not landing:
        raise HTTPException(status_code=404, detail="Store landing not found.")
    if payment_type not in landing.accept_payment_types:
        raise HTTPException(status_code=400, detail=f"This store does not accept {payment_type} payments.")

    total_amount = 0.0
    verified_products = []
    for item in items:
        product = session.get(Product, item.product_id)
        if not product:
            raise HTTPException(status_code=404, detail=f"Product not found: {item.product_id}")
        total_amount += unit_price(product) * item.quantity
        verified_products.append({"productId": str(product.id), "quantity": item.quantity})

    if payment_type == PaymentType.PREPAID.value:
        settlement = settle_prepaid(session, order.payment_details, screenshots or [])
    else:
        settlement = CashOnDelivery()

    order_db = Order(
        order_name=order.order_name.strip(),
        products=verified_products,
        total_amount=total_amount,
        address=order.address,
        phone_primary=order.phone_primary,
        phone_secondary=order.phone_secondary or "",
        payment_type=settlement.payment_type,
        payment_details=settlement.stored_details(),
        payment_screenshot=settlement.screenshots,
        site_owner=site_owner,
    )
    session.add(order_db)
    session.commit()
    session.refresh(order_db)
    logger.info(f"Order {order_db.id} placed for store {site_owner}, total {total_amount}")
    return order_db


def settle_prepaid(session: Session, raw_details: Any, uploads: list[UploadFile]) -> Prepaid:
    """Store and sniff the proof-of-payment uploads, then check the payout account."""
    uploads = [upload for upload in uploads if upload is not None and upload.filename]
    if not uploads:
        raise HTTPException(status_code=400, detail="Transaction screenshot is required.")

    written = []
    try:
        for upload in uploads:
            path = media.save_upload(upload)
            written.append(path)
            check = media.validate_file_type(path)
            if not check.valid:
                logger.warning(f"Rejected upload '{upload.filename}': {check.reason}")
                raise HTTPException(status_code=400, detail=check.reason)

        details = parse_payment_details(raw_details)
        if not session.get(Payment, details.account_id):
            raise HTTPException(status_code=404, detail="Payment account not found.")
    except HTTPException:
        for path in written:
            media.remove_file(path)
        raise

    return Prepaid(details=details, screenshots=[media.public_url(path) for path in written])


def parse_payment_details(raw: Any) -> PaymentDetails:
    raw = decode_json_field(raw)
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="All payment details are required.")
    required = ("paymentPlatform", "paymentPlatformUserName", "accountId")
    if any(_is_blank(raw.get(key)) for key in required):
        raise HTTPException(status_code=400, detail="All payment details are required.")
    require_id(raw["accountId"])
    try:
        return PaymentDetails.model_validate(raw)
    except ValidationError:
        raise HTTPException(status_code=400, detail="All payment details are required.")


# ------------------------------ Reads ------------------------------

def _products_by_id(session: Session, orders: list[Order]) -> dict[uuid.UUID, Product]:
    ids = {parse_id(item.get("productId")) for order in orders for item in order.products}
    ids.discard(None)
    if not ids:
        return {}
    return {p.id: p for p in session.exec(select(Product).where(Product.id.in_(ids))).all()}


def list_owner_orders(session: Session, owner_id: uuid.UUID) -> list[OrderRead]:
    """All of a store's orders, newest first, with products and payout accounts resolved."""
    orders = session.exec(
        select(Order).where(Order.site_owner == owner_id).order_by(Order.created_at.desc())
    ).all()
    products = _products_by_id(session, orders)
    return [_owner_view(session, order, products) for order in orders]


def owner_order_view(session: Session, order: Order) -> OrderRead:
    return _owner_view(session, order, _products_by_id(session, [order]))


def _owner_view(session: Session, order: Order, products: dict[uuid.UUID, Product]) -> OrderRead:
    line_items = []
    for item in order.products:
        product = products.get(parse_id(item.get("productId")))
        summary = None
        if product:
            summary = ProductSummary(
                id=product.id, name=product.name, price=product.price,
                discount_price=product.discount_price,
            )
        line_items.append(LineItemRead(product_id=item["productId"], quantity=item["quantity"], product=summary))

    details = dict(order.payment_details)
    account_id = parse_id(details.get("accountId"))
    if account_id:
        account = session.get(Payment, account_id)
        details["account"] = (
            PaymentAccountRead.model_validate(account).model_dump(by_alias=True, mode="json")
            if account else None
        )
    return _to_read(order, line_items, details)


def get_public_order(session: Session, order_id: str) -> OrderRead:
    """
    Customer-facing status lookup by order id. No ownership check; payer
    identifying fields are stripped from the payment details.
    """
    order = session.get(Order, require_id(order_id))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found.")

    products = _products_by_id(session, [order])
    line_items = []
    for item in order.products:
        product = products.get(parse_id(item.get("productId")))
        summary = None
        if product:
            summary = ProductSummary(
                id=product.id, name=product.name, price=product.price,
                image=product.images[0] if product.images else None,
            )
        line_items.append(LineItemRead(product_id=item["productId"], quantity=item["quantity"], product=summary))

    details = {k: v for k, v in order.payment_details.items() if k not in PRIVATE_PAYMENT_FIELDS}
    return _to_read(order, line_items, details)


def _to_read(order: Order, line_items: list[LineItemRead], details: dict) -> OrderRead:
    return OrderRead(
        id=order.id,
        order_code=order.order_code,
        order_name=order.order_name,
        products=line_items,
        total_amount=order.total_amount,
        progress=order.progress,
        reason=order.reason,
        phone_primary=order.phone_primary,
        phone_secondary=order.phone_secondary,
        address=order.address,
        payment_type=order.payment_type,
        payment_details=details,
        payment_screenshot=list(order.payment_screenshot),
        transaction_screenshot=order.transaction_screenshot,
        site_owner=order.site_owner,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


# ------------------------------ Order codes ------------------------------

def normalize_order_code(raw: str|None) -> str:
    if _is_blank(raw):
        raise HTTPException(status_code=400, detail="Order code is required.")
    code = raw.strip().upper()
    if not ORDER_CODE_PATTERN.match(code):
        raise HTTPException(
            status_code=400,
            detail=f"Order code must be {ORDER_CODE_LENGTH} letters or digits.",
        )
    return code


def generate_order_code(session: Session) -> str:
    """A random order code no order currently holds."""
    for _ in range(MAX_CODE_ATTEMPTS):
        code = "".join(secrets.choice(ORDER_CODE_ALPHABET) for _ in range(ORDER_CODE_LENGTH))
        if not session.exec(select(Order.id).where(Order.order_code == code)).first():
            return code
    logger.error(f"No free order code after {MAX_CODE_ATTEMPTS} attempts")
    raise HTTPException(status_code=409, detail="Could not generate a unique order code.")


def claim_order_code(session: Session, order: Order, raw_code: str|None) -> None:
    code = normalize_order_code(raw_code)
    if order.order_code == code:
        return
    holder = session.exec(select(Order.id).where(Order.order_code == code, Order.id != order.id)).first()
    if holder:
        raise HTTPException(status_code=409, detail=f"Order code {code} is already in use.")
    order.order_code = code


# ------------------------------ Transitions ------------------------------

def _owned_order(session: Session, order_id: str, owner_id: uuid.UUID) -> Order:
    order = session.get(Order, require_id(order_id))
    if not order:
        raise HTTPException(status_code=404, detail="Order not found.")
    if order.site_owner != owner_id:
        raise HTTPException(status_code=403, detail="Access denied.")
    return order


def deduct_stock(session: Session, order: Order) -> None:
    """
    Take every line item's quantity out of stock, or none of it.

    All quantities are checked before anything is written. Each decrement is a
    conditional update so a concurrent fulfilment cannot push stock below zero;
    if one loses that race the caller's rollback undoes the earlier decrements.
    """
    deductions = []
    for item in order.products:
        product = session.get(Product, parse_id(item.get("productId")))
        if not product:
            logger.warning(f"Product {item.get('productId')} of order {order.id} no longer exists, skipping stock")
            continue
        if product.stock_count < item["quantity"]:
            raise HTTPException(status_code=400, detail=f"Not enough stock for {product.name}")
        deductions.append((product, item["quantity"]))

    for product, quantity in deductions:
        result = session.exec(
            update(Product)
            .where(Product.id == product.id, Product.stock_count >= quantity)
            .values(stock_count=Product.stock_count - quantity)
        )
        if result.rowcount != 1:
            raise HTTPException(status_code=400, detail=f"Not enough stock for {product.name}")
        logger.info(f"Deducted {quantity} from product {product.id} for order {order.id}")


def update_progress(session: Session, order_id: str, owner_id: uuid.UUID, update_in: OrderProgressUpdate) -> Order:
    """
    Move an order through pending/accepted/declined/done.

    ``accepted`` and ``done`` claim the order code carried in the request;
    ``done`` also deducts stock. Nothing is persisted unless every step succeeds.
    """
    try:
        progress = Progress(update_in.progress)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid progress value.")

    order = _owned_order(session, order_id, owner_id)
    if order.progress == Progress.DONE:
        raise HTTPException(status_code=400, detail="Completed orders cannot be modified.")

    try:
        if progress == Progress.DECLINED:
            if _is_blank(update_in.reason):
                raise HTTPException(status_code=400, detail="A reason is required to decline an order.")
            order.reason = update_in.reason

        if progress in (Progress.ACCEPTED, Progress.DONE):
            claim_order_code(session, order, update_in.order_code)

        if progress == Progress.DONE:
            deduct_stock(session, order)

        previous = order.progress
        order.progress = progress
        order.updated_at = utcnow()
        session.add(order)
        session.commit()
    except HTTPException:
        session.rollback()
        raise
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Order code {update_in.order_code} is already in use.")

    session.refresh(order)
    logger.info(f"Order {order.id} moved from {previous.value} to {progress.value}")
    return order


# ------------------------------ Deletion ------------------------------

def delete_order(session: Session, order_id: str, owner_id: uuid.UUID) -> None:
    order = _owned_order(session, order_id, owner_id)
    if order.progress == Progress.DONE:
        raise HTTPException(status_code=400, detail="Cannot delete completed orders.")

    files = list(order.payment_screenshot)
    if order.transaction_screenshot:
        files.append(order.transaction_screenshot)
    for url in files:
        media.remove_file(media.local_path(url))

    session.delete(order)
    session.commit()
    logger.info(f"Order {order_id} deleted with {len(files)} screenshot(s)")
