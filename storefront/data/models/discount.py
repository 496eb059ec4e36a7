# storefront/data/models/discount.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, CheckConstraint
from sqlalchemy.sql import func

from storefront.data.database import Base


class DiscountCodeModel(Base):
    __tablename__ = "discount_codes"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True)  # always upper-case
    title = Column(String(255), nullable=True)

    type = Column(String(20), nullable=False)  # PERCENTAGE, FIXED_AMOUNT, FREE_SHIPPING
    value = Column(Numeric(10, 2), nullable=False, default=0)
    min_order_amount = Column(Numeric(10, 2), nullable=True)

    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR used_count <= max_uses", name="ck_discount_usage_bound"),
    )
