# storefront_api/models.py

import secrets
import string
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_shop_id() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(5))


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"

class BillingStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"

class PaymentType(str, Enum):
    COD = "COD"
    PREPAID = "Prepaid"

class Progress(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    DONE = "done"


# ------------------------------ Tenants ------------------------------

class User(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    username: str = Field(index=True, unique=True, nullable=False)
    email: str = Field(index=True, unique=True, nullable=False)
    role: Role = Field(default=Role.ADMIN, nullable=False)
    shop_id: str = Field(default_factory=generate_shop_id, unique=True)
    domain_name: str = Field(nullable=False)
    server_start_date: datetime = Field(default_factory=utcnow)
    server_expired_date: datetime = Field(nullable=False)
    payment_status: BillingStatus = Field(default=BillingStatus.UNPAID)
    product_post_limit: int = Field(default=50, ge=1)
    created_at: datetime = Field(default_factory=utcnow)


# ------------------------------ Storefront ------------------------------

class Landing(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    store_name: str = Field(default="My Store")
    colour_code: str = Field(default="#000000")
    image: str
    hero_image: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    owner_id: uuid.UUID = Field(foreign_key="user.id", index=True, unique=True)
    accept_payment_types: list[str] = Field(
        default_factory=lambda: [PaymentType.COD.value], sa_column=Column(JSON)
    )
    created_at: datetime = Field(default_factory=utcnow)


class Product(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True)
    price: float
    discount_price: float|None = Field(default=0)
    stock_count: int = Field(default=0)
    description: str|None = None
    images: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    owner_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Payment(SQLModel, table=True):
    """Payout account an admin registers for prepaid orders."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    platform: str
    platform_user_name: str
    account_number: str
    owner_id: uuid.UUID = Field(foreign_key="user.id", index=True)


# ------------------------------ Orders ------------------------------

class Order(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_code: str|None = Field(default=None, index=True, unique=True, max_length=7)
    order_name: str
    products: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_amount: float = Field(ge=0)
    progress: Progress = Field(default=Progress.PENDING, index=True)
    reason: str|None = None
    phone_primary: str
    phone_secondary: str = Field(default="")
    address: str
    payment_type: PaymentType
    payment_details: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    payment_screenshot: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # single-file uploads from before multi-screenshot support
    transaction_screenshot: str|None = None
    site_owner: uuid.UUID = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class OrderCreate(SQLModel):
    """Raw order placement input; every field is checked by the order engine."""
    order_name: str|None = None
    products: Any = None
    phone_primary: str|None = None
    phone_secondary: str|None = None
    address: str|None = None
    payment_type: str|None = None
    payment_details: Any = None
    site_owner: str|None = None


# ------------------------------ API schemas ------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PaymentDetails(CamelModel):
    payment_platform: str
    payment_platform_user_name: str
    account_id: uuid.UUID
    internal_note: str|None = None


class OrderProgressUpdate(CamelModel):
    progress: str|None = None
    order_code: str|None = None
    reason: str|None = None


class PaymentAccountRead(CamelModel):
    id: uuid.UUID
    platform: str
    platform_user_name: str
    account_number: str


class ProductSummary(CamelModel):
    id: uuid.UUID
    name: str
    price: float
    discount_price: float|None = None
    image: str|None = None


class LineItemRead(CamelModel):
    product_id: uuid.UUID
    quantity: int
    product: ProductSummary|None = None


class OrderRead(CamelModel):
    id: uuid.UUID
    order_code: str|None = None
    order_name: str
    products: list[LineItemRead]
    total_amount: float
    progress: Progress
    reason: str|None = None
    phone_primary: str
    phone_secondary: str
    address: str
    payment_type: PaymentType
    payment_details: dict
    payment_screenshot: list[str]
    transaction_screenshot: str|None = None
    site_owner: uuid.UUID
    created_at: datetime
    updated_at: datetime


class OrderCodeRead(CamelModel):
    order_code: str


T = TypeVar("T")

class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope."""
    status: int
    data: T|None = None
    message: str = ""
