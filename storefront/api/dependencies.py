# storefront/api/dependencies.py
"""
Request-scoped wiring: one session per request, services built on top of it.

Routers take these through ``Depends`` so tests can swap any of them with
``app.dependency_overrides``.
"""
import uuid
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import StoreError
from storefront.services.cart_service import CartIdentity, CartService
from storefront.services.customer_service import CustomerService
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.utils.settings import ADMIN_API_KEY

SESSION_HEADER = "X-Session-Id"


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    return CustomerService(db)


def get_lock_service() -> LockService:
    return LockService()


def get_order_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
) -> OrderService:
    return OrderService(db, lock_service=lock_service)


@dataclass
class RequestIdentity:
    identity: CartIdentity
    # set when the session id was minted for this request
    issued_session_id: str | None = None


def get_identity(
    user_id: str | None = Query(None),
    x_session_id: str | None = Header(None),
    customers: CustomerService = Depends(get_customer_service),
) -> RequestIdentity:
    """Signed-in customers are identified by user_id, guests by the session header."""
    try:
        if user_id:
            return RequestIdentity(CartIdentity(customer_id=customers.resolve_customer_id(user_id)))
        if x_session_id:
            return RequestIdentity(CartIdentity(session_id=x_session_id))
    except StoreError as e:
        raise to_http(e)

    session_id = f"sess_{uuid.uuid4().hex}"
    return RequestIdentity(CartIdentity(session_id=session_id), issued_session_id=session_id)


def get_customer_id(
    user_id: str = Query(...),
    customers: CustomerService = Depends(get_customer_service),
) -> int:
    try:
        return customers.resolve_customer_id(user_id)
    except StoreError as e:
        raise to_http(e)


def require_admin(x_admin_key: str | None = Header(None)) -> None:
    if not ADMIN_API_KEY or x_admin_key != ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privilege required.",
        )
