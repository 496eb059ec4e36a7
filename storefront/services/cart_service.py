# storefront/services/cart_service.py
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import (
    CartItemNotFound,
    CartConflict,
    CartNotFound,
    InsufficientInventory,
    InvalidQuantity,
    UnavailableVariant,
    ValidationFailed,
)
from storefront.domain.pricing import line_total, money, ZERO
from storefront.repos.cart_repo import CartRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.utils.retry import write_conflict_retry
from storefront.utils.settings import GUEST_CART_TTL_SECONDS
from storefront.utils.timeutil import utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartIdentity:
    """Owner of a cart: a customer profile or an anonymous session, never both."""

    customer_id: int | None = None
    session_id: str | None = None

    def __post_init__(self):
        if (self.customer_id is None) == (not self.session_id):
            raise ValidationFailed("Exactly one of customer_id or session_id is required")

    @property
    def is_guest(self) -> bool:
        return self.customer_id is None


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def format_cart(cart: CartModel, items: List[CartItemModel]) -> Dict[str, Any]:
    lines = []
    for item in items:
        variant = item.variant
        product = variant.product
        lines.append(
            {
                "id": item.id,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "product": {
                    "id": product.id,
                    "title": product.title,
                    "slug": product.slug,
                    "image": product.image_url,
                },
                "variant": {
                    "id": variant.id,
                    "title": variant.title,
                    "sku": variant.sku,
                    "price": money(variant.price),
                    "compare_at_price": money(variant.compare_at_price) if variant.compare_at_price is not None else None,
                    "inventory_qty": variant.inventory_qty,
                },
                "line_total": line_total(variant.price, item.quantity),
            }
        )

    return {
        "id": cart.id,
        "customer_id": cart.customer_id,
        "session_id": cart.session_id,
        "items": lines,
        "item_count": sum(line["quantity"] for line in lines),
        "subtotal": money(sum((line["line_total"] for line in lines), ZERO)),
        "expires_at": cart.expires_at,
    }


class CartService:
    """
    Cart lifecycle for customers and guest sessions.
    commands (add, update, remove, clear, merge) write through the cart repo,
    get_cart / get_or_create_cart return the materialized cart view.
    """

    def __init__(self, db: Session, guest_ttl_seconds: int = GUEST_CART_TTL_SECONDS):
        self.repo = CartRepo(db)
        self.inventory = InventoryRepo(db)
        self.guest_ttl = timedelta(seconds=guest_ttl_seconds)

    # query

    def get_cart(self, cart_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise CartNotFound(cart_id)
        return format_cart(cart, self.repo.get_cart_items(cart_id))

    def _find_cart(self, identity: CartIdentity) -> CartModel | None:
        if identity.is_guest:
            return self.repo.get_cart_by_session(identity.session_id)
        return self.repo.get_cart_by_customer(identity.customer_id)

    def _resolve_cart(self, identity: CartIdentity) -> CartModel:
        existing = self._find_cart(identity)
        if existing:
            return existing

        new_cart = CartModel(
            customer_id=identity.customer_id,
            session_id=identity.session_id if identity.is_guest else None,
            expires_at=utcnow() + self.guest_ttl if identity.is_guest else None,
        )
        try:
            created = self.repo.create_cart(new_cart)
        except IntegrityError:
            # unique identity column: a concurrent request won the insert
            self.repo.rollback()
            created = self._find_cart(identity)
            if created is None:
                raise
            return created

        logger.info(
            f"Created cart {created.id} for "
            f"{'session ' + identity.session_id if identity.is_guest else 'customer ' + str(identity.customer_id)}"
        )
        return created

    def get_or_create_cart(self, identity: CartIdentity) -> Dict[str, Any]:
        cart = self._resolve_cart(identity)
        return format_cart(cart, self.repo.get_cart_items(cart.id))

    # commands

    def _require_cart(self, cart_id: int) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise CartNotFound(cart_id)
        return cart

    def _touch(self, cart: CartModel) -> None:
        # guest carts stay alive while the shopper keeps using them
        self.repo.touch(cart.id, utcnow() + self.guest_ttl if cart.is_guest else None)

    def add_item(self, cart_id: int, variant_id: int, quantity: int) -> Dict[str, Any]:
        if not _is_positive_int(quantity):
            raise InvalidQuantity(quantity)

        cart = self._require_cart(cart_id)

        variant = self.inventory.get_variant(variant_id)
        if variant is None or not variant.is_available:
            raise UnavailableVariant(variant_id)

        try:
            # increment-and-check-bound in one statement, insert-if-in-stock otherwise
            applied = self.repo.increment_item_within_stock(cart.id, variant_id, quantity)
            if not applied and variant_id not in self.repo.get_items_for_variants(cart.id, [variant_id]):
                try:
                    applied = self.repo.insert_item_within_stock(cart.id, variant_id, quantity)
                except IntegrityError:
                    # a concurrent add created the line, fold into it instead
                    self.repo.rollback()
                    applied = self.repo.increment_item_within_stock(cart.id, variant_id, quantity)

            if not applied:
                available = self.inventory.get_available_qty(variant_id)
                self.repo.rollback()
                logger.warning(
                    f"Rejected add of {quantity} x variant {variant_id} to cart {cart_id}, available {available}"
                )
                raise InsufficientInventory(variant_id, quantity, available)

            self._touch(cart)
            self.repo.commit()
        except InsufficientInventory:
            raise
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Added {quantity} x variant {variant_id} to cart {cart_id}")
        return self.get_cart(cart_id)

    def update_item_quantity(self, cart_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
            raise InvalidQuantity(quantity)

        cart = self._require_cart(cart_id)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise CartItemNotFound(item_id)

        try:
            if quantity == 0:
                self.repo.delete_cart_item(cart.id, item_id)
                logger.info(f"Removed item {item_id} from cart {cart_id}")
            else:
                applied = self.repo.set_item_quantity_within_stock(cart.id, item_id, item.variant_id, quantity)
                if not applied:
                    available = self.inventory.get_available_qty(item.variant_id)
                    self.repo.rollback()
                    if self.repo.get_cart_item(cart.id, item_id) is None:
                        raise CartItemNotFound(item_id)
                    raise InsufficientInventory(item.variant_id, quantity, available)
                logger.info(f"Set item {item_id} in cart {cart_id} to {quantity}")

            self._touch(cart)
            self.repo.commit()
        except (InsufficientInventory, CartItemNotFound):
            raise
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(cart_id)

    def remove_item(self, cart_id: int, item_id: int) -> Dict[str, Any]:
        cart = self._require_cart(cart_id)
        removed = self.repo.delete_cart_item(cart.id, item_id)
        if removed:
            self._touch(cart)
        self.repo.commit()
        return self.get_cart(cart_id)

    def clear_cart(self, cart_id: int) -> Dict[str, Any]:
        cart = self._require_cart(cart_id)
        removed = self.repo.clear_items(cart.id)
        if removed:
            self._touch(cart)
        self.repo.commit()
        logger.info(f"Cleared {removed} lines from cart {cart_id}")
        return self.get_cart(cart_id)

    def merge_cart(self, session_id: str, customer_id: int) -> Dict[str, Any]:
        """
        Fold the guest cart of ``session_id`` into the customer's cart.

        Quantities are capped at the variant's current inventory and lines for
        variants that are no longer sold are dropped without an error. The
        guest cart is deleted in the same commit, so running the merge again,
        or twice at once, is a no-op.
        """
        try:
            return self._merge_once(session_id, customer_id)
        except IntegrityError as e:
            logger.error(f"Gave up merging session {session_id} into customer {customer_id}: {e.orig}")
            raise CartConflict("Cart changed during merge, please retry") from e

    @write_conflict_retry()
    def _merge_once(self, session_id: str, customer_id: int) -> Dict[str, Any]:
        customer_identity = CartIdentity(customer_id=customer_id)

        guest_cart = self.repo.get_cart_by_session(session_id) if session_id else None
        guest_items = self.repo.get_cart_items(guest_cart.id) if guest_cart else []
        if not guest_items:
            return self.get_or_create_cart(customer_identity)

        customer_cart = self._resolve_cart(customer_identity)
        guest_cart_id, customer_cart_id = guest_cart.id, customer_cart.id
        if customer_cart_id == guest_cart_id:
            return self.get_cart(customer_cart_id)

        guest_qty = {item.variant_id: item.quantity for item in guest_items}
        variants = self.inventory.get_variants(list(guest_qty))

        folded = inserted = 0
        try:
            # deleting the guest cart claims it; a merge that finds it gone lost the race
            if not self.repo.delete_cart(guest_cart_id):
                self.repo.rollback()
                logger.info(f"Guest cart {guest_cart_id} was already merged")
                return self.get_cart(customer_cart_id)

            for variant_id, qty in guest_qty.items():
                variant = variants.get(variant_id)
                if variant is None or not variant.is_available or variant.inventory_qty <= 0:
                    logger.info(f"Merge skipped variant {variant_id}, no longer available")
                    continue
                if self.repo.fold_item_capped(customer_cart_id, variant_id, qty):
                    folded += 1
                elif self.repo.insert_item_capped(customer_cart_id, variant_id, qty):
                    inserted += 1

            self.repo.touch(customer_cart_id)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            f"Merged guest cart {guest_cart_id} into cart {customer_cart_id}: "
            f"{folded} updated, {inserted} inserted"
        )
        return self.get_cart(customer_cart_id)
