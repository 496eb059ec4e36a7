# storefront/services/order_service.py
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.customer import AddressModel
from storefront.data.models.order import OrderModel, OrderItemModel, PaymentModel, FulfillmentModel
from storefront.domain.errors import (
    CartNotFound,
    CheckoutConflict,
    CheckoutFailed,
    DiscountRejected,
    DiscountRejection,
    EmptyCart,
    InsufficientInventory,
    InvalidStatusTransition,
    OrderConflict,
    OrderNotFound,
    StoreError,
    UnavailableVariant,
    ValidationFailed,
)
from storefront.domain.orders import OrderStatus, REVENUE_STATUSES, can_transition, generate_order_number
from storefront.domain.pricing import (
    DiscountType,
    ZERO,
    calculate_discount,
    compute_totals,
    money,
    subtotal_of,
    validate_discount,
)
from storefront.domain.schemas import CheckoutIn, OrderOut
from storefront.repos.cart_repo import CartRepo
from storefront.repos.customer_repo import CustomerRepo
from storefront.repos.discount_repo import DiscountRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.settings_repo import SettingsRepo
from storefront.services.cart_service import format_cart
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_service import MockPaymentProcessor, PaymentResult
from storefront.utils.settings import CHECKOUT_LOCK_TTL_SECONDS
from storefront.utils.timeutil import utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountQuote:
    discount_code_id: int
    code: str
    type: DiscountType
    discount: Decimal

    @property
    def free_shipping(self) -> bool:
        return self.type == DiscountType.FREE_SHIPPING


@dataclass(frozen=True)
class CheckoutLine:
    """Plain copy of a cart line and its variant, taken before payment."""

    item_id: int
    variant_id: int
    quantity: int
    price: Decimal
    original_price: Decimal
    product_title: str
    variant_title: str | None
    sku: str | None
    image_url: str | None
    available_qty: int
    purchasable: bool


def format_order(order: OrderModel) -> Dict[str, Any]:
    return OrderOut.model_validate(order).model_dump()


class OrderService:
    """
    Checkout and order domain.

    checkout() turns a cart into a PAID order: validate, price, charge, then
    write the order, items, payment, inventory and discount usage in a single
    transaction. Order status changes after that are admin operations.
    """

    def __init__(
        self,
        db: Session,
        payment_processor: MockPaymentProcessor | None = None,
        notifier=None,
        lock_service: LockService | None = None,
        lock_ttl: int = CHECKOUT_LOCK_TTL_SECONDS,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.inventory = InventoryRepo(db)
        self.discounts = DiscountRepo(db)
        self.settings = SettingsRepo(db)
        self.customers = CustomerRepo(db)
        self.payment_processor = payment_processor or MockPaymentProcessor()
        self.notifier = notifier or NotificationService()
        self.lock_service = lock_service
        self.lock_ttl = lock_ttl

    # discounts

    def apply_discount(self, code: str, subtotal) -> DiscountQuote:
        """Validate ``code`` against ``subtotal`` and price it. Never consumes a use."""
        if not code or not code.strip():
            raise ValidationFailed("Discount code is required")

        discount = self.discounts.get_by_code(code)
        validate_discount(discount, subtotal, utcnow())

        discount_type = DiscountType(discount.type)
        return DiscountQuote(
            discount_code_id=discount.id,
            code=discount.code,
            type=discount_type,
            discount=calculate_discount(discount_type, discount.value, subtotal),
        )

    def quote_discount_for_cart(self, cart_id: int, code: str) -> Dict[str, Any]:
        lines = self._load_lines(cart_id)
        if not lines:
            raise EmptyCart()

        subtotal = subtotal_of((line.price, line.quantity) for line in lines)
        quote = self.apply_discount(code, subtotal)
        return {
            "valid": True,
            "code": quote.code,
            "type": quote.type.value,
            "discount": quote.discount,
            "subtotal": subtotal,
            "new_subtotal": money(subtotal - quote.discount),
        }

    # checkout

    def _load_lines(self, cart_id: int) -> List[CheckoutLine]:
        cart = self.carts.get_cart(cart_id)
        if not cart:
            raise CartNotFound(cart_id)

        lines = []
        for item in self.carts.get_cart_items(cart_id):
            variant = item.variant
            product = variant.product
            lines.append(
                CheckoutLine(
                    item_id=item.id,
                    variant_id=variant.id,
                    quantity=item.quantity,
                    price=money(variant.price),
                    original_price=money(variant.compare_at_price or variant.price),
                    product_title=product.title,
                    variant_title=variant.title,
                    sku=variant.sku,
                    image_url=product.image_url,
                    available_qty=variant.inventory_qty,
                    purchasable=variant.is_available,
                )
            )
        return lines

    def preview(self, cart_id: int, discount_code: str | None = None) -> Dict[str, Any]:
        """Totals as checkout would compute them, without charging or writing anything."""
        cart = self.carts.get_cart(cart_id)
        if not cart:
            raise CartNotFound(cart_id)
        view = format_cart(cart, self.carts.get_cart_items(cart_id))
        if not view["items"]:
            raise EmptyCart()

        quote = None
        discount_error = None
        if discount_code:
            try:
                quote = self.apply_discount(discount_code, view["subtotal"])
            except (DiscountRejected, ValidationFailed) as e:
                discount_error = e.message

        config = self.settings.get_shipping_and_tax_config()
        totals = compute_totals(
            view["subtotal"],
            quote.discount if quote else ZERO,
            config,
            free_shipping=bool(quote and quote.free_shipping),
        )
        return {
            "items": view["items"],
            "item_count": view["item_count"],
            "subtotal": totals.subtotal,
            "discount": totals.discount,
            "discount_type": quote.type.value if quote else None,
            "discount_error": discount_error,
            "shipping": totals.shipping,
            "free_shipping_threshold": config.free_shipping_threshold,
            "tax": totals.tax,
            "tax_rate": config.tax_rate_percent,
            "total": totals.total,
        }

    def checkout(self, cart_id: int, checkout_input: CheckoutIn, customer_id: int | None = None) -> Dict[str, Any]:
        token = uuid.uuid4().hex
        locked = self._acquire_lock(cart_id, token)
        try:
            return self._checkout(cart_id, checkout_input, customer_id)
        finally:
            if locked:
                self._release_lock(cart_id, token)

    def _acquire_lock(self, cart_id: int, token: str) -> bool:
        if self.lock_service is None:
            return False
        try:
            acquired = self.lock_service.acquire_checkout_lock(cart_id, token, self.lock_ttl)
        except RedisError as e:
            # advisory only, the transaction below still guards the cart
            logger.warning(f"Checkout lock unavailable for cart {cart_id}: {e}")
            return False
        if not acquired:
            raise CheckoutConflict("A checkout for this cart is already in progress")
        return True

    def _release_lock(self, cart_id: int, token: str) -> None:
        try:
            self.lock_service.release_checkout_lock(cart_id, token)
        except RedisError as e:
            logger.warning(f"Could not release checkout lock for cart {cart_id}: {e}")

    def _checkout(self, cart_id: int, checkout_input: CheckoutIn, customer_id: int | None) -> Dict[str, Any]:
        lines = self._load_lines(cart_id)
        if not lines:
            raise EmptyCart()

        # advisory, the guarded decrement at commit time is what counts
        for line in lines:
            if not line.purchasable:
                raise UnavailableVariant(line.variant_id)
            if line.quantity > line.available_qty:
                raise InsufficientInventory(line.variant_id, line.quantity, line.available_qty, line.product_title)

        subtotal = subtotal_of((line.price, line.quantity) for line in lines)

        quote = None
        if checkout_input.discount_code:
            quote = self.apply_discount(checkout_input.discount_code, subtotal)

        config = self.settings.get_shipping_and_tax_config()
        totals = compute_totals(
            subtotal,
            quote.discount if quote else ZERO,
            config,
            free_shipping=bool(quote and quote.free_shipping),
        )

        # no transaction stays open across the gateway round-trip
        self.db.rollback()

        payment = self.payment_processor.charge(checkout_input.payment_info.card_number, totals.total)

        try:
            order_id = self._persist_order(cart_id, lines, totals, quote, payment, checkout_input, customer_id)
        except StoreError as e:
            self.db.rollback()
            self.payment_processor.void(payment.transaction_id)
            logger.warning(f"Checkout of cart {cart_id} rolled back: {e.message}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            self.payment_processor.void(payment.transaction_id)
            logger.exception(f"Checkout of cart {cart_id} failed in the database")
            raise CheckoutFailed("Checkout could not be completed, please try again") from e

        order = self.find_by_id(order_id)
        logger.info(f"Order {order['order_number']} placed from cart {cart_id}, total {order['total']}")

        self._send_confirmation(order, checkout_input)
        return order

    def _persist_order(self, cart_id, lines, totals, quote, payment: PaymentResult, checkout_input: CheckoutIn, customer_id):
        # claim the lines first; a second checkout of the same cart finds nothing left
        claimed = self.carts.claim_items(cart_id, [(line.item_id, line.quantity) for line in lines])
        if claimed != len(lines):
            raise CheckoutConflict("Cart changed during checkout, please review it and try again")

        shipping_address = checkout_input.shipping_address.model_dump()

        address_id = None
        if customer_id is not None and checkout_input.save_address:
            if self.customers.get_customer(customer_id) is not None:
                address = self.customers.add_address(
                    AddressModel(customer_id=customer_id, is_default=False, **shipping_address)
                )
                address_id = address.id

        order = self.repo.add_order(
            OrderModel(
                order_number=generate_order_number(),
                customer_id=customer_id,
                email=checkout_input.email,
                phone=checkout_input.phone,
                status=OrderStatus.PAID.value,
                subtotal=totals.subtotal,
                discount=totals.discount,
                shipping_cost=totals.shipping,
                tax=totals.tax,
                total=totals.total,
                discount_code_id=quote.discount_code_id if quote else None,
                shipping_address_id=address_id,
                shipping_address=shipping_address,
                customer_notes=checkout_input.customer_notes,
            )
        )

        for line in lines:
            order.items.append(
                OrderItemModel(
                    variant_id=line.variant_id,
                    product_title=line.product_title,
                    variant_title=line.variant_title,
                    sku=line.sku,
                    image_url=line.image_url,
                    quantity=line.quantity,
                    price=line.price,
                    original_price=line.original_price,
                )
            )
            if not self.inventory.decrement_inventory(line.variant_id, line.quantity):
                available = self.inventory.get_available_qty(line.variant_id)
                raise InsufficientInventory(line.variant_id, line.quantity, available, line.product_title)

        order.payments.append(
            PaymentModel(
                amount=totals.total,
                status="COMPLETED",
                provider=self.payment_processor.provider,
                transaction_id=payment.transaction_id,
                card_last4=payment.card_last4,
                card_brand=payment.card_brand,
            )
        )

        if quote is not None and not self.discounts.increment_usage(quote.discount_code_id):
            raise DiscountRejected(DiscountRejection.USAGE_LIMIT_REACHED, quote.code)

        self.carts.touch(cart_id)

        order_id = order.id
        self.db.commit()
        return order_id

    def _send_confirmation(self, order: Dict[str, Any], checkout_input: CheckoutIn) -> None:
        snapshot = {
            "order_number": order["order_number"],
            "email": order["email"],
            "customer_name": checkout_input.shipping_address.first_name,
            "items": [
                {
                    "product_title": item["product_title"],
                    "variant_title": item["variant_title"],
                    "quantity": item["quantity"],
                    "price": str(item["price"]),
                }
                for item in order["items"]
            ],
            "subtotal": str(order["subtotal"]),
            "discount": str(order["discount"]),
            "shipping_cost": str(order["shipping_cost"]),
            "tax": str(order["tax"]),
            "total": str(order["total"]),
            "shipping_address": order["shipping_address"],
        }
        # the order is committed, a failed notification must not surface
        try:
            if not self.notifier.send_order_confirmation(snapshot):
                logger.warning(f"Confirmation for order {order['order_number']} was not dispatched")
        except Exception:
            logger.exception(f"Confirmation for order {order['order_number']} failed")

    # queries

    def find_by_id(self, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return format_order(order)

    def find_by_order_number(self, order_number: str, email: str | None = None) -> Dict[str, Any]:
        order = self.repo.get_order_by_number(order_number)
        if not order:
            raise OrderNotFound(order_number)
        # public lookups must know the e-mail the order was placed with
        if email is not None and order.email.strip().lower() != email.strip().lower():
            raise OrderNotFound(order_number)
        return format_order(order)

    def find_many(
        self,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
        customer_id: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Dict[str, Any]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        if status is not None:
            status = self._parse_status(status).value

        orders, total = self.repo.list_orders(
            offset=(page - 1) * limit,
            limit=limit,
            status=status,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
        )
        return {
            "orders": [format_order(order) for order in orders],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }

    def get_customer_orders(self, customer_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return self.find_many(page=page, limit=limit, customer_id=customer_id)

    def get_revenue_stats(self) -> Dict[str, Any]:
        return {
            "total_revenue": money(self.repo.revenue_total(s.value for s in REVENUE_STATUSES)),
            "order_count": self.repo.count_orders(),
        }

    # status transitions

    @staticmethod
    def _parse_status(status) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            raise ValidationFailed(f"Unknown order status: {status}")

    def _get_order_model(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def _transition(self, order: OrderModel, target: OrderStatus, values: dict) -> None:
        current = OrderStatus(order.status)
        if not can_transition(current, target):
            raise InvalidStatusTransition(current.value, target.value)

        rowcount = self.repo.update_status(
            order.id,
            current.value,
            {"status": target.value, "updated_at": utcnow(), **values},
        )
        if rowcount == 0:
            self.repo.rollback()
            raise OrderConflict("Order was modified by another operation")

    def update_status(self, order_id: int, status, notes: str | None = None) -> Dict[str, Any]:
        target = self._parse_status(status)
        if target == OrderStatus.SHIPPED:
            raise ValidationFailed("Orders are marked shipped by adding a fulfillment")

        order = self._get_order_model(order_id)
        current = OrderStatus(order.status)

        values = {}
        if notes is not None:
            values["notes"] = notes

        if target == current:
            if values:
                self.repo.update_status(order.id, current.value, {"updated_at": utcnow(), **values})
                self.repo.commit()
            return self.find_by_id(order_id)

        now = utcnow()
        if target == OrderStatus.DELIVERED:
            values["delivered_at"] = now
        elif target == OrderStatus.CANCELLED:
            values["cancelled_at"] = now

        self._transition(order, target, values)
        self.repo.commit()
        logger.info(f"Order {order_id} moved from {current.value} to {target.value}")
        return self.find_by_id(order_id)

    def add_fulfillment(
        self,
        order_id: int,
        carrier: str | None = None,
        tracking_number: str | None = None,
        tracking_url: str | None = None,
        estimated_delivery: datetime | None = None,
    ) -> Dict[str, Any]:
        order = self._get_order_model(order_id)
        current = OrderStatus(order.status)
        if current != OrderStatus.SHIPPED and not can_transition(current, OrderStatus.SHIPPED):
            raise InvalidStatusTransition(current.value, OrderStatus.SHIPPED.value)

        now = utcnow()
        try:
            self.repo.add_fulfillment(
                FulfillmentModel(
                    order_id=order.id,
                    carrier=carrier,
                    tracking_number=tracking_number,
                    tracking_url=tracking_url,
                    estimated_delivery=estimated_delivery,
                    shipped_at=now,
                )
            )
            # further parcels of an already shipped order keep the status
            if current != OrderStatus.SHIPPED:
                self._transition(order, OrderStatus.SHIPPED, {"shipped_at": now})
            self.repo.commit()
        except OrderConflict:
            raise
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Fulfillment added to order {order_id}")
        return self.find_by_id(order_id)

    def cancel(self, order_id: int, reason: str) -> Dict[str, Any]:
        if not reason or not reason.strip():
            raise ValidationFailed("Cancellation reason is required")

        order = self._get_order_model(order_id)
        self._transition(order, OrderStatus.CANCELLED, {"cancelled_at": utcnow(), "cancel_reason": reason})
        self.repo.commit()
        logger.info(f"Order {order_id} cancelled: {reason}")
        return self.find_by_id(order_id)

    def refund(self, order_id: int, notes: str | None = None) -> Dict[str, Any]:
        return self.update_status(order_id, OrderStatus.REFUNDED, notes)
