# storefront/repos/cart_repo.py
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from sqlalchemy import and_, case, delete, insert, literal, or_, select, update
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductVariantModel
from storefront.utils.timeutil import utcnow


def _stock_of(variant_id: int):
    return (
        select(ProductVariantModel.inventory_qty)
        .where(ProductVariantModel.id == variant_id)
        .scalar_subquery()
    )


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    # carts

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_customer(self, customer_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.customer_id == customer_id)
        ).scalar_one_or_none()

    def get_cart_by_session(self, session_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.session_id == session_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def delete_cart(self, cart_id: int) -> int:
        # lines go with it through ON DELETE CASCADE
        return self.db.execute(
            delete(CartModel)
            .where(CartModel.id == cart_id)
            .execution_options(synchronize_session=False)
        ).rowcount

    def touch(self, cart_id: int, expires_at: datetime | None = None) -> None:
        values = {"updated_at": utcnow()}
        if expires_at is not None:
            values["expires_at"] = expires_at
        self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    def delete_expired_guest_carts(self, now: datetime) -> int:
        return self.db.execute(
            delete(CartModel)
            .where(
                CartModel.customer_id.is_(None),
                CartModel.expires_at.is_not(None),
                CartModel.expires_at < now,
            )
            .execution_options(synchronize_session=False)
        ).rowcount

    # lines

    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .options(joinedload(CartItemModel.variant).joinedload(ProductVariantModel.product))
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def get_cart_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.id == item_id,
                CartItemModel.cart_id == cart_id,
            )
        ).scalar_one_or_none()

    def get_items_for_variants(self, cart_id: int, variant_ids: Iterable[int]) -> Dict[int, CartItemModel]:
        ids = list(variant_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.variant_id.in_(ids),
            )
            .execution_options(populate_existing=True)
        ).scalars()
        return {item.variant_id: item for item in rows}

    def increment_item_within_stock(self, cart_id: int, variant_id: int, quantity: int) -> int:
        """UPDATE ... SET quantity = quantity + :q WHERE quantity + :q <= stock.

        Returns the rowcount; 0 means either no line exists or the new total
        would exceed the variant's inventory.
        """
        return self.db.execute(
            update(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.variant_id == variant_id,
                CartItemModel.quantity + quantity <= _stock_of(variant_id),
            )
            .values(quantity=CartItemModel.quantity + quantity)
            .execution_options(synchronize_session=False)
        ).rowcount

    def insert_item_within_stock(self, cart_id: int, variant_id: int, quantity: int) -> int:
        """INSERT ... SELECT that only produces a row when stock covers quantity."""
        source = select(
            literal(cart_id),
            ProductVariantModel.id,
            literal(quantity),
        ).where(
            ProductVariantModel.id == variant_id,
            ProductVariantModel.inventory_qty >= quantity,
        )
        return self.db.execute(
            insert(CartItemModel.__table__).from_select(["cart_id", "variant_id", "quantity"], source)
        ).rowcount

    def set_item_quantity_within_stock(self, cart_id: int, item_id: int, variant_id: int, quantity: int) -> int:
        return self.db.execute(
            update(CartItemModel)
            .where(
                CartItemModel.id == item_id,
                CartItemModel.cart_id == cart_id,
                literal(quantity) <= _stock_of(variant_id),
            )
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        ).rowcount

    def fold_item_capped(self, cart_id: int, variant_id: int, quantity: int) -> int:
        """UPDATE ... SET quantity = min(quantity + :q, stock) for an existing line.

        Returns the rowcount; 0 means the cart has no line for the variant.
        """
        stock = _stock_of(variant_id)
        return self.db.execute(
            update(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.variant_id == variant_id,
            )
            .values(
                quantity=case(
                    (CartItemModel.quantity + quantity <= stock, CartItemModel.quantity + quantity),
                    else_=stock,
                )
            )
            .execution_options(synchronize_session=False)
        ).rowcount

    def insert_item_capped(self, cart_id: int, variant_id: int, quantity: int) -> int:
        """INSERT ... SELECT of min(:q, stock); nothing is inserted when the variant is out of stock."""
        source = select(
            literal(cart_id),
            ProductVariantModel.id,
            case(
                (ProductVariantModel.inventory_qty >= quantity, literal(quantity)),
                else_=ProductVariantModel.inventory_qty,
            ),
        ).where(
            ProductVariantModel.id == variant_id,
            ProductVariantModel.inventory_qty > 0,
        )
        return self.db.execute(
            insert(CartItemModel.__table__).from_select(["cart_id", "variant_id", "quantity"], source)
        ).rowcount

    def delete_cart_item(self, cart_id: int, item_id: int) -> int:
        return self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.id == item_id, CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        ).rowcount

    def clear_items(self, cart_id: int) -> int:
        return self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        ).rowcount

    def claim_items(self, cart_id: int, lines: List[Tuple[int, int]]) -> int:
        """Delete exactly the (item_id, quantity) lines that were priced.

        A concurrent checkout of the same cart, or an edit made after the
        lines were read, makes the rowcount come back short.
        """
        if not lines:
            return 0
        matches = [
            and_(CartItemModel.id == item_id, CartItemModel.quantity == quantity)
            for item_id, quantity in lines
        ]
        return self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id, or_(*matches))
            .execution_options(synchronize_session=False)
        ).rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
