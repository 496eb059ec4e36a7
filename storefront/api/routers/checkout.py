# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, Response

from storefront.api.dependencies import (
    SESSION_HEADER,
    RequestIdentity,
    get_cart_service,
    get_identity,
    get_order_service,
)
from storefront.api.errors import to_http
from storefront.domain.errors import StoreError
from storefront.domain.schemas import CheckoutIn, DiscountIn, DiscountQuoteOut, OrderOut, PreviewIn, PreviewOut
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/checkout", tags=["checkout"])


def _cart_id(carts: CartService, who: RequestIdentity, response: Response) -> int:
    if who.issued_session_id:
        response.headers[SESSION_HEADER] = who.issued_session_id
    return carts.get_or_create_cart(who.identity)["id"]


@router.post("/discount", response_model=DiscountQuoteOut)
def apply_discount(
    payload: DiscountIn,
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    carts: CartService = Depends(get_cart_service),
    svc: OrderService = Depends(get_order_service),
):
    """
    Checks a code against the current cart. Does not reserve a use of it.
    """
    try:
        return svc.quote_discount_for_cart(_cart_id(carts, who, response), payload.code)
    except StoreError as e:
        raise to_http(e)


@router.post("/preview", response_model=PreviewOut)
def preview(
    payload: PreviewIn,
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    carts: CartService = Depends(get_cart_service),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.preview(_cart_id(carts, who, response), payload.discount_code)
    except StoreError as e:
        raise to_http(e)


@router.post("", response_model=OrderOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    carts: CartService = Depends(get_cart_service),
    svc: OrderService = Depends(get_order_service),
):
    """
    Charges the card and places the order. The confirmation e-mail is queued
    after commit and never fails the request.
    """
    try:
        cart_id = _cart_id(carts, who, response)
        return svc.checkout(cart_id, payload, customer_id=who.identity.customer_id)
    except StoreError as e:
        raise to_http(e)
