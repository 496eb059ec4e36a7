# storefront/data/models/product.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE, DRAFT, ARCHIVED
    image_url = Column(String(500), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    variants = relationship("ProductVariantModel", back_populates="product")


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=False, unique=True)

    price = Column(Numeric(10, 2), nullable=False)
    compare_at_price = Column(Numeric(10, 2), nullable=True)
    inventory_qty = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="variants")

    __table_args__ = (
        CheckConstraint("inventory_qty >= 0", name="ck_variant_inventory_non_negative"),
    )

    @property
    def is_available(self) -> bool:
        product = self.product
        return product is not None and product.status == "ACTIVE" and product.deleted_at is None
