# storefront/data/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)

    # a cart belongs either to a customer or to an anonymous session, never both
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True, unique=True)
    session_id = Column(String(128), nullable=True, unique=True)

    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "(customer_id IS NULL) <> (session_id IS NULL)",
            name="ck_cart_single_identity",
        ),
    )

    @property
    def is_guest(self) -> bool:
        return self.customer_id is None
