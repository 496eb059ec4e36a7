# storefront/data/models/order.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(64), nullable=False, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)

    email = Column(String(255), nullable=False)
    phone = Column(String(40), nullable=True)

    # PENDING, PROCESSING, PAID, SHIPPED, DELIVERED, CANCELLED, REFUNDED
    status = Column(String(20), nullable=False, default="PENDING")

    # frozen at checkout, never recomputed
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    discount_code_id = Column(Integer, ForeignKey("discount_codes.id"), nullable=True)
    shipping_address_id = Column(Integer, ForeignKey("addresses.id"), nullable=True)
    shipping_address = Column(JSON, nullable=True)

    customer_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("OrderItemModel", back_populates="order", cascade="all, delete-orphan")
    payments = relationship("PaymentModel", back_populates="order", cascade="all, delete-orphan")
    fulfillments = relationship(
        "FulfillmentModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="FulfillmentModel.id",
    )
    discount_code = relationship("DiscountCodeModel")


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)

    # snapshot of the catalog at purchase time
    product_title = Column(String(255), nullable=False)
    variant_title = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=True)
    image_url = Column(String(500), nullable=True)

    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=False)

    order = relationship("OrderModel", back_populates="items")


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="COMPLETED")
    provider = Column(String(50), nullable=False, default="mock")
    transaction_id = Column(String(100), nullable=True)

    # only a masked summary, never the full card number or cvv
    card_last4 = Column(String(4), nullable=True)
    card_brand = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    order = relationship("OrderModel", back_populates="payments")


class FulfillmentModel(Base):
    __tablename__ = "fulfillments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    carrier = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)
    tracking_url = Column(String(500), nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    order = relationship("OrderModel", back_populates="fulfillments")
