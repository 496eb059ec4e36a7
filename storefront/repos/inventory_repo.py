# storefront/repos/inventory_repo.py
from typing import Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.product import ProductVariantModel


class InventoryRepo:
    """Variant lookups and the guarded inventory decrement."""

    def __init__(self, db: Session):
        self.db = db

    def get_variant(self, variant_id: int) -> ProductVariantModel | None:
        return self.db.execute(
            select(ProductVariantModel)
            .options(joinedload(ProductVariantModel.product))
            .where(ProductVariantModel.id == variant_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_variants(self, variant_ids: Iterable[int]) -> Dict[int, ProductVariantModel]:
        ids = list(variant_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductVariantModel)
            .options(joinedload(ProductVariantModel.product))
            .where(ProductVariantModel.id.in_(ids))
            .execution_options(populate_existing=True)
        ).scalars()
        return {variant.id: variant for variant in rows}

    def get_available_qty(self, variant_id: int) -> int | None:
        return self.db.execute(
            select(ProductVariantModel.inventory_qty).where(ProductVariantModel.id == variant_id)
        ).scalar_one_or_none()

    def decrement_inventory(self, variant_id: int, quantity: int) -> bool:
        # refuses to go negative against the committed quantity, not a stale read
        rowcount = self.db.execute(
            update(ProductVariantModel)
            .where(
                ProductVariantModel.id == variant_id,
                ProductVariantModel.inventory_qty >= quantity,
            )
            .values(inventory_qty=ProductVariantModel.inventory_qty - quantity)
            .execution_options(synchronize_session=False)
        ).rowcount
        return rowcount == 1
