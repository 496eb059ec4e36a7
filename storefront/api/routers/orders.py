# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_customer_id, get_order_service
from storefront.api.errors import to_http
from storefront.domain.errors import OrderNotFound, StoreError
from storefront.domain.schemas import OrderListOut, OrderOut
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderListOut)
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    customer_id: int = Depends(get_customer_id),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_customer_orders(customer_id, page=page, limit=limit)
    except StoreError as e:
        raise to_http(e)


@router.get("/lookup/{order_number}", response_model=OrderOut)
def lookup_order(
    order_number: str,
    email: str = Query(..., min_length=3),
    svc: OrderService = Depends(get_order_service),
):
    """
    Guest order lookup; the e-mail must match the one used at checkout.
    """
    try:
        return svc.find_by_order_number(order_number, email)
    except StoreError as e:
        raise to_http(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    customer_id: int = Depends(get_customer_id),
    svc: OrderService = Depends(get_order_service),
):
    try:
        order = svc.find_by_id(order_id)
        # someone else's order looks exactly like a missing one
        if order["customer_id"] != customer_id:
            raise OrderNotFound(order_id)
        return order
    except StoreError as e:
        raise to_http(e)
