# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ItemIn(BaseModel):
    """Line added to the cart."""

    variant_id: int = Field(..., gt=0)
    quantity: int = Field(1, gt=0)


class UpdateItemIn(BaseModel):
    """New quantity for a cart line, 0 removes it."""

    quantity: int = Field(..., ge=0)


class MergeCartIn(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=128)


class CartProductOut(BaseModel):
    id: int
    title: str
    slug: str
    image: Optional[str] = None


class CartVariantOut(BaseModel):
    id: int
    title: str
    sku: str
    price: Decimal
    compare_at_price: Optional[Decimal] = None
    inventory_qty: int


class CartItemOut(BaseModel):
    id: int
    variant_id: int
    quantity: int
    product: CartProductOut
    variant: CartVariantOut
    line_total: Decimal


class CartOut(BaseModel):
    id: int
    customer_id: Optional[int] = None
    session_id: Optional[str] = None
    items: List[CartItemOut]
    item_count: int
    subtotal: Decimal
    expires_at: Optional[datetime] = None


class ShippingAddressIn(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    company: Optional[str] = None
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field("US", min_length=2, max_length=2)
    phone: Optional[str] = None


class PaymentInfoIn(BaseModel):
    """Raw card data for the mock processor only; never persisted."""

    card_number: str = Field(..., min_length=1)
    expiry_month: str = Field(..., min_length=1)
    expiry_year: str = Field(..., min_length=1)
    cvv: str = Field(..., min_length=1)
    cardholder_name: str = Field(..., min_length=1)

    @field_validator("card_number")
    @classmethod
    def _has_digits(cls, value: str) -> str:
        if not any(ch.isdigit() for ch in value):
            raise ValueError("Card number must contain digits")
        return value


class CheckoutIn(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    phone: Optional[str] = None
    shipping_address: ShippingAddressIn
    billing_address: Optional[ShippingAddressIn] = None
    same_as_shipping: bool = True
    payment_info: PaymentInfoIn
    discount_code: Optional[str] = None
    customer_notes: Optional[str] = None
    save_address: bool = False


class DiscountIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class PreviewIn(BaseModel):
    discount_code: Optional[str] = None


class DiscountQuoteOut(BaseModel):
    valid: bool = True
    code: str
    type: str
    discount: Decimal
    subtotal: Decimal
    new_subtotal: Decimal


class PreviewOut(BaseModel):
    items: List[CartItemOut]
    item_count: int
    subtotal: Decimal
    discount: Decimal
    discount_type: Optional[str] = None
    discount_error: Optional[str] = None
    shipping: Decimal
    free_shipping_threshold: Optional[Decimal] = None
    tax: Decimal
    tax_rate: Decimal
    total: Decimal


class OrderItemOut(BaseModel):
    id: int
    variant_id: Optional[int] = None
    product_title: str
    variant_title: Optional[str] = None
    sku: Optional[str] = None
    image_url: Optional[str] = None
    quantity: int
    price: Decimal
    original_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    id: int
    amount: Decimal
    status: str
    provider: str
    transaction_id: Optional[str] = None
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FulfillmentOut(BaseModel):
    id: int
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    shipped_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderDiscountOut(BaseModel):
    id: int
    code: str
    type: str
    value: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Full order view returned by checkout and order lookups."""

    id: int
    order_number: str
    customer_id: Optional[int] = None
    email: str
    phone: Optional[str] = None
    status: str
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    shipping_address: Optional[dict] = None
    customer_notes: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemOut]
    payments: List[PaymentOut]
    fulfillments: List[FulfillmentOut]
    discount_code: Optional[OrderDiscountOut] = None

    model_config = ConfigDict(from_attributes=True)


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: PaginationOut


class RevenueStatsOut(BaseModel):
    total_revenue: Decimal
    order_count: int


class UpdateOrderStatusIn(BaseModel):
    status: str = Field(..., pattern="^(PENDING|PROCESSING|PAID|SHIPPED|DELIVERED|CANCELLED|REFUNDED)$")
    notes: Optional[str] = None


class FulfillmentIn(BaseModel):
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class CancelOrderIn(BaseModel):
    reason: str = Field(..., min_length=1)
