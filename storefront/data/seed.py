# storefront/data/seed.py
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.database import SessionLocal, init_db
from storefront.data.models import DiscountCodeModel, ProductModel, ProductVariantModel, StoreSettingsModel
from storefront.data.models.settings import DEFAULT_SETTINGS_ID
from storefront.utils.settings import STORE_NAME
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {
        "title": "Raw Concrete Tee",
        "slug": "raw-concrete-tee",
        "image_url": "/images/raw-concrete-tee.jpg",
        "variants": [
            ("S / Grey", "RCT-S-GRY", "49.99", None, 25),
            ("M / Grey", "RCT-M-GRY", "49.99", None, 40),
            ("L / Grey", "RCT-L-GRY", "49.99", None, 10),
        ],
    },
    {
        "title": "Monolith Hoodie",
        "slug": "monolith-hoodie",
        "image_url": "/images/monolith-hoodie.jpg",
        "variants": [
            ("M / Black", "MNH-M-BLK", "89.00", "110.00", 15),
            ("L / Black", "MNH-L-BLK", "89.00", "110.00", 5),
        ],
    },
    {
        "title": "Slab Tote Bag",
        "slug": "slab-tote-bag",
        "image_url": "/images/slab-tote-bag.jpg",
        "variants": [
            ("One Size", "STB-OS", "24.50", None, 100),
        ],
    },
]

DISCOUNT_CODES = [
    {"code": "WELCOME10", "title": "Welcome Discount", "type": "PERCENTAGE", "value": Decimal("10")},
    {
        "code": "SAVE20",
        "title": "$20 Off Orders Over $100",
        "type": "FIXED_AMOUNT",
        "value": Decimal("20"),
        "min_order_amount": Decimal("100"),
    },
    {
        "code": "FREESHIP",
        "title": "Free Shipping",
        "type": "FREE_SHIPPING",
        "value": Decimal("0"),
        "min_order_amount": Decimal("50"),
    },
    {
        "code": "BRUTALIST25",
        "title": "25% Off Everything",
        "type": "PERCENTAGE",
        "value": Decimal("25"),
        "max_uses": 100,
    },
]


def seed(db: Session) -> None:
    """Only inserts what is missing, so it can run on every deploy."""
    if db.get(StoreSettingsModel, DEFAULT_SETTINGS_ID) is None:
        db.add(
            StoreSettingsModel(
                id=DEFAULT_SETTINGS_ID,
                name=STORE_NAME,
                currency="USD",
                shipping_rate=Decimal("9.99"),
                free_shipping_threshold=Decimal("75.00"),
                default_tax_rate=Decimal("8.50"),
            )
        )

    existing_slugs = set(db.execute(select(ProductModel.slug)).scalars())
    for entry in DEMO_PRODUCTS:
        if entry["slug"] in existing_slugs:
            continue
        product = ProductModel(title=entry["title"], slug=entry["slug"], image_url=entry["image_url"])
        for title, sku, price, compare_at, qty in entry["variants"]:
            product.variants.append(
                ProductVariantModel(
                    title=title,
                    sku=sku,
                    price=Decimal(price),
                    compare_at_price=Decimal(compare_at) if compare_at else None,
                    inventory_qty=qty,
                )
            )
        db.add(product)

    existing_codes = set(db.execute(select(DiscountCodeModel.code)).scalars())
    for code in DISCOUNT_CODES:
        if code["code"] not in existing_codes:
            db.add(DiscountCodeModel(active=True, used_count=0, **code))

    db.commit()


def main() -> None:
    init_db()
    db = SessionLocal()
    try:
        seed(db)
        logger.info("Seed data in place")
    finally:
        db.close()


if __name__ == "__main__":
    main()
