# storefront/data/models/cart_item.py
from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)

    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    cart = relationship("CartModel", back_populates="items")
    variant = relationship("ProductVariantModel")

    __table_args__ = (
        UniqueConstraint("cart_id", "variant_id", name="u_cart_variant"),
        CheckConstraint("quantity > 0", name="ck_cart_item_quantity_positive"),
    )
