"""
Shared pytest fixtures for the storefront tests.

- SQLite engine and session per test (in-memory, single shared connection)
- factories for products/variants, discount codes and store settings
- payment processor without latency, fake notifier
- cart and order services wired to the above
"""
import os

# storefront.data.database builds its engine at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_API_KEY"] = ""

from decimal import Decimal
from typing import Callable

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.data.database import make_engine, init_db
from storefront.data.models import (
    CustomerModel,
    DiscountCodeModel,
    ProductModel,
    ProductVariantModel,
    StoreSettingsModel,
)
from storefront.data.models.settings import DEFAULT_SETTINGS_ID
from storefront.services.cart_service import CartIdentity, CartService
from storefront.services.order_service import OrderService
from tests.fixtures import FakeNotifier, RecordingProcessor

# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_variant(db) -> Callable[..., ProductVariantModel]:
    counter = {"n": 0}

    def _make(
        price="49.99",
        inventory_qty=10,
        title="Raw Concrete Tee",
        variant_title="M / Grey",
        compare_at_price=None,
        status="ACTIVE",
    ) -> ProductVariantModel:
        counter["n"] += 1
        n = counter["n"]
        product = ProductModel(title=title, slug=f"product-{n}", status=status, image_url=f"/img/{n}.jpg")
        variant = ProductVariantModel(
            title=variant_title,
            sku=f"SKU-{n}",
            price=Decimal(str(price)),
            compare_at_price=Decimal(str(compare_at_price)) if compare_at_price is not None else None,
            inventory_qty=inventory_qty,
        )
        product.variants.append(variant)
        db.add(product)
        db.commit()
        db.refresh(variant)
        return variant

    return _make


@pytest.fixture
def make_discount(db) -> Callable[..., DiscountCodeModel]:
    def _make(code="WELCOME10", type="PERCENTAGE", value="10", **kwargs) -> DiscountCodeModel:
        kwargs.setdefault("active", True)
        kwargs.setdefault("used_count", 0)
        discount = DiscountCodeModel(code=code, type=type, value=Decimal(str(value)), **kwargs)
        db.add(discount)
        db.commit()
        db.refresh(discount)
        return discount

    return _make


@pytest.fixture
def store_settings(db) -> StoreSettingsModel:
    settings = StoreSettingsModel(
        id=DEFAULT_SETTINGS_ID,
        name="Test Store",
        currency="USD",
        shipping_rate=Decimal("9.99"),
        free_shipping_threshold=Decimal("75.00"),
        default_tax_rate=Decimal("8.50"),
    )
    db.add(settings)
    db.commit()
    return settings


@pytest.fixture
def customer(db) -> CustomerModel:
    c = CustomerModel(user_id="user-1")
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def processor() -> RecordingProcessor:
    return RecordingProcessor()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def cart_service(db) -> CartService:
    return CartService(db)


@pytest.fixture
def order_service(db, processor, notifier) -> OrderService:
    return OrderService(db, payment_processor=processor, notifier=notifier)


@pytest.fixture
def guest_cart(cart_service) -> dict:
    return cart_service.get_or_create_cart(CartIdentity(session_id="sess_test"))
