# storefront/repos/order_repo.py
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel, FulfillmentModel


def _full_order():
    return (
        selectinload(OrderModel.items),
        selectinload(OrderModel.payments),
        selectinload(OrderModel.fulfillments),
        selectinload(OrderModel.discount_code),
    )


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        # part of the caller's unit of work, committed by the service
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(*_full_order())
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_order_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(*_full_order())
            .where(OrderModel.order_number == order_number)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_orders(
        self,
        *,
        offset: int,
        limit: int,
        status: str | None = None,
        customer_id: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Tuple[List[OrderModel], int]:
        filters = []
        if status:
            filters.append(OrderModel.status == status)
        if customer_id is not None:
            filters.append(OrderModel.customer_id == customer_id)
        if start_date is not None:
            filters.append(OrderModel.created_at >= start_date)
        if end_date is not None:
            filters.append(OrderModel.created_at <= end_date)

        orders = list(
            self.db.execute(
                select(OrderModel)
                .options(*_full_order())
                .where(*filters)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
                .offset(offset)
                .limit(limit)
            ).scalars()
        )
        total = self.db.execute(select(func.count(OrderModel.id)).where(*filters)).scalar_one()
        return orders, total

    def update_status(self, order_id: int, expected_status: str, values: dict) -> int:
        """Compare-and-set on the current status."""
        return self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount

    def add_fulfillment(self, fulfillment: FulfillmentModel) -> FulfillmentModel:
        self.db.add(fulfillment)
        self.db.flush()
        return fulfillment

    def revenue_total(self, statuses: Iterable[str]) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(OrderModel.total), 0)).where(OrderModel.status.in_(list(statuses)))
        ).scalar_one()
        return Decimal(str(total))

    def count_orders(self) -> int:
        return self.db.execute(select(func.count(OrderModel.id))).scalar_one()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
