# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Response

from storefront.api.dependencies import (
    SESSION_HEADER,
    RequestIdentity,
    get_cart_service,
    get_customer_id,
    get_identity,
)
from storefront.api.errors import to_http
from storefront.domain.errors import StoreError
from storefront.domain.schemas import CartOut, ItemIn, MergeCartIn, UpdateItemIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def _current_cart_id(svc: CartService, who: RequestIdentity, response: Response) -> int:
    if who.issued_session_id:
        response.headers[SESSION_HEADER] = who.issued_session_id
    return svc.get_or_create_cart(who.identity)["id"]


@router.get("", response_model=CartOut)
def get_cart(
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    svc: CartService = Depends(get_cart_service),
):
    try:
        if who.issued_session_id:
            response.headers[SESSION_HEADER] = who.issued_session_id
        return svc.get_or_create_cart(who.identity)
    except StoreError as e:
        raise to_http(e)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart_id = _current_cart_id(svc, who, response)
        return svc.add_item(cart_id, payload.variant_id, payload.quantity)
    except StoreError as e:
        raise to_http(e)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: UpdateItemIn,
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart_id = _current_cart_id(svc, who, response)
        return svc.update_item_quantity(cart_id, item_id, payload.quantity)
    except StoreError as e:
        raise to_http(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart_id = _current_cart_id(svc, who, response)
        return svc.remove_item(cart_id, item_id)
    except StoreError as e:
        raise to_http(e)


@router.delete("", response_model=CartOut)
def clear_cart(
    response: Response,
    who: RequestIdentity = Depends(get_identity),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart_id = _current_cart_id(svc, who, response)
        return svc.clear_cart(cart_id)
    except StoreError as e:
        raise to_http(e)


@router.post("/merge", response_model=CartOut)
def merge_cart(
    payload: MergeCartIn,
    customer_id: int = Depends(get_customer_id),
    svc: CartService = Depends(get_cart_service),
):
    """
    Called after sign-in: moves the guest session's lines into the customer's cart.
    """
    try:
        return svc.merge_cart(payload.session_id, customer_id)
    except StoreError as e:
        raise to_http(e)
