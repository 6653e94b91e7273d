# storefront_api/main.py

import logging
import os
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy import text
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront_api import settings
from storefront_api.db import create_db_and_tables, get_session
from storefront_api.models import (
    ApiResponse, OrderCodeRead, OrderCreate, OrderProgressUpdate, OrderRead, User,
)
from storefront_api.orders import (
    decode_json_field,
    delete_order,
    generate_order_code,
    get_public_order,
    list_owner_orders,
    owner_order_view,
    place_order,
    update_progress,
)
from storefront_api.utils import get_current_admin_user


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan event to manage application startup and shutdown.
    """
    # Initialize the database and create tables
    create_db_and_tables()
    logger.info("Database created and tables ensured.")

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    logger.info(f"Serving uploads from {settings.UPLOAD_DIR}")
    yield


app = FastAPI(lifespan=lifespan, title="Storefront Admin API", version="1.0.0")

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


def envelope(status_code: int, message: str, data=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "data": data, "message": message},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return envelope(400, "Invalid input.")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catches all unhandled exceptions and returns a 500 Internal Server Error.
    """
    logger.error(f"Unhandled exception: {exc}")
    return envelope(500, "Internal server error")


@app.get("/health")
def health(session: Annotated[Session, Depends(get_session)]):
    try:
        session.exec(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok"}


# ------------------------------ Public ------------------------------

async def json_order_body(request: Request) -> dict|None:
    """Order fields sent as an application/json body; None for multipart and form requests."""
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        return None
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid input.")
    return body if isinstance(body, dict) else {}


@app.post("/api/v1/orders", response_model=ApiResponse[OrderRead], status_code=201)
def create_order(
    session: Annotated[Session, Depends(get_session)],
    json_body: Annotated[dict|None, Depends(json_order_body)],
    order_name: Annotated[str|None, Form(alias="orderName")] = None,
    products: Annotated[str|None, Form()] = None,
    phone_primary: Annotated[str|None, Form(alias="phonePrimary")] = None,
    phone_secondary: Annotated[str|None, Form(alias="phoneSecondary")] = None,
    address: Annotated[str|None, Form()] = None,
    payment_type: Annotated[str|None, Form(alias="paymentType")] = None,
    payment_details: Annotated[str|None, Form(alias="paymentDetails")] = None,
    site_owner: Annotated[str|None, Form(alias="siteOwner")] = None,
    payment_screenshot: Annotated[list[UploadFile]|None, File(alias="paymentScreenshot")] = None,
    transaction_screenshot: Annotated[UploadFile|None, File(alias="transactionScreenshot")] = None,
):
    """
    Place an order against a store. As a multipart form, ``products`` and ``paymentDetails``
    are JSON-encoded fields and Prepaid orders attach proof-of-payment images as
    ``paymentScreenshot``. Orders without files may also be sent as a JSON body.
    """
    if json_body is not None:
        fields = {
            "order_name": json_body.get("orderName"),
            "products": json_body.get("products"),
            "phone_primary": json_body.get("phonePrimary"),
            "phone_secondary": json_body.get("phoneSecondary"),
            "address": json_body.get("address"),
            "payment_type": json_body.get("paymentType"),
            "payment_details": json_body.get("paymentDetails"),
            "site_owner": json_body.get("siteOwner"),
        }
    else:
        fields = {
            "order_name": order_name,
            "products": products,
            "phone_primary": phone_primary,
            "phone_secondary": phone_secondary,
            "address": address,
            "payment_type": payment_type,
            "payment_details": payment_details,
            "site_owner": site_owner,
        }
    fields["products"] = decode_json_field(fields["products"])
    try:
        order = OrderCreate.model_validate(fields)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid input.")

    screenshots = list(payment_screenshot or [])
    if transaction_screenshot is not None:
        screenshots.append(transaction_screenshot)

    order_db = place_order(session, order, screenshots)
    # the customer gets the same view as the public lookup
    order_read = get_public_order(session, str(order_db.id))
    return ApiResponse[OrderRead](status=201, data=order_read, message="Order placed successfully.")


# ------------------------------ Store owner ------------------------------

@app.get("/api/v1/orders", response_model=ApiResponse[list[OrderRead]])
def get_orders(
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_admin_user)],
):
    orders = list_owner_orders(session, current_user.id)
    return ApiResponse[list[OrderRead]](status=200, data=orders, message=f"{len(orders)} order(s) found.")


@app.get("/api/v1/orders/new-code", response_model=ApiResponse[OrderCodeRead])
def get_new_order_code(
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_admin_user)],
):
    """Suggest an unused order code for accepting an order."""
    code = generate_order_code(session)
    return ApiResponse[OrderCodeRead](status=200, data=OrderCodeRead(order_code=code), message="Order code generated.")


@app.get("/api/v1/orders/{order_id}", response_model=ApiResponse[OrderRead])
def get_order(order_id: str, session: Annotated[Session, Depends(get_session)]):
    return ApiResponse[OrderRead](status=200, data=get_public_order(session, order_id), message="Order found.")


@app.put("/api/v1/orders/{order_id}", response_model=ApiResponse[OrderRead])
def update_order_progress(
    order_id: str,
    update_in: OrderProgressUpdate,
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_admin_user)],
):
    order_db = update_progress(session, order_id, current_user.id, update_in)
    return ApiResponse[OrderRead](status=200, data=owner_order_view(session, order_db), message="Order status updated.")


@app.delete("/api/v1/orders/{order_id}", response_model=ApiResponse[None])
def remove_order(
    order_id: str,
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_admin_user)],
):
    delete_order(session, order_id, current_user.id)
    return ApiResponse[None](status=200, data=None, message="Order deleted.")
