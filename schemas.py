"""
Pydantic request bodies for the storefront API.

Field names are snake_case in Python and camelCase on the wire.
"""
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic.alias_generators import to_camel

GatewayName = Literal["paystack", "flutterwave"]
PaymentMethodName = Literal["paystack", "flutterwave", "bank_transfer"]
OrderStatusName = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------------------------------------
# Orders
# -------------------------------------------------
class Address(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)


class CreateOrderRequest(CamelModel):
    book_id: str = Field(..., min_length=1, description="Book being purchased")
    payment_method: PaymentMethodName
    shipping_address: Address
    billing_address: Optional[Address] = None
    notes: Optional[str] = None
    coupon_code: Optional[str] = None


class UpdateOrderRequest(CamelModel):
    status: Optional[OrderStatusName] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


# -------------------------------------------------
# Payments
# -------------------------------------------------
class InitializePaymentRequest(CamelModel):
    order_id: str = Field(..., min_length=1)
    payment_method: GatewayName
    currency: str = Field("NGN", min_length=3, max_length=3)
    callback_url: Optional[HttpUrl] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class VerifyPaymentRequest(CamelModel):
    reference: str = Field(..., min_length=1)
    provider: GatewayName
    order_id: str = Field(..., min_length=1)


# -------------------------------------------------
# Coupons & preorders
# -------------------------------------------------
class CouponItem(CamelModel):
    id: Optional[str] = None
    type: Optional[str] = None  # "book" | "course"


class ValidateCouponRequest(CamelModel):
    """Both fields are optional here; missing values get the coupon error message."""

    code: Optional[str] = None
    order_amount: Optional[Decimal] = None
    items: List[CouponItem] = Field(default_factory=list)


class PreorderPurchaseRequest(CamelModel):
    quantity: int = Field(1, ge=1)


# -------------------------------------------------
# Publishing
# -------------------------------------------------
class CreateSubmissionRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=50, max_length=2000)
    category: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=100, le=1_000_000)
    manuscript_file: HttpUrl
    cover_image: Optional[HttpUrl] = None
    synopsis: str = Field(..., min_length=100, max_length=1000)
    author_bio: str = Field(..., min_length=50, max_length=500)
    target_audience: str = Field(..., min_length=20, max_length=300)
    marketing_plan: Optional[str] = Field(None, min_length=50, max_length=1000)


class SubmissionPaymentRequest(CamelModel):
    payment_method: GatewayName = "paystack"
    redirect_url: Optional[HttpUrl] = None


# -------------------------------------------------
# Academy & events
# -------------------------------------------------
class EnrollRequest(CamelModel):
    payment_method: GatewayName = "paystack"
    redirect_url: Optional[HttpUrl] = None


class EventRegistrationRequest(CamelModel):
    special_requests: Optional[str] = None
    payment_method: GatewayName = "paystack"
