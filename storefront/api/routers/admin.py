# storefront/api/routers/admin.py
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_order_service, require_admin
from storefront.api.errors import to_http
from storefront.domain.errors import StoreError
from storefront.domain.schemas import (
    CancelOrderIn,
    FulfillmentIn,
    OrderListOut,
    OrderOut,
    RevenueStatsOut,
    UpdateOrderStatusIn,
)
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=OrderListOut)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = Query(None),
    customer_id: int | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.find_many(
            page=page,
            limit=limit,
            status=status,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
        )
    except StoreError as e:
        raise to_http(e)


@router.get("/stats", response_model=RevenueStatsOut)
def revenue_stats(svc: OrderService = Depends(get_order_service)):
    return svc.get_revenue_stats()


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: UpdateOrderStatusIn,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.update_status(order_id, payload.status, payload.notes)
    except StoreError as e:
        raise to_http(e)


@router.post("/{order_id}/fulfillments", response_model=OrderOut, status_code=201)
def add_fulfillment(
    order_id: int,
    payload: FulfillmentIn,
    svc: OrderService = Depends(get_order_service),
):
    """
    Records a shipment and moves the order to SHIPPED.
    """
    try:
        return svc.add_fulfillment(
            order_id,
            carrier=payload.carrier,
            tracking_number=payload.tracking_number,
            tracking_url=payload.tracking_url,
            estimated_delivery=payload.estimated_delivery,
        )
    except StoreError as e:
        raise to_http(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: CancelOrderIn,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.cancel(order_id, payload.reason)
    except StoreError as e:
        raise to_http(e)
