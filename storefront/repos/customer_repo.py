# storefront/repos/customer_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.customer import CustomerModel, AddressModel


class CustomerRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> CustomerModel | None:
        return self.db.get(CustomerModel, customer_id)

    def get_by_user_id(self, user_id: str) -> CustomerModel | None:
        return self.db.execute(
            select(CustomerModel).where(CustomerModel.user_id == user_id)
        ).scalar_one_or_none()

    def create_customer(self, customer: CustomerModel) -> CustomerModel:
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def add_address(self, address: AddressModel) -> AddressModel:
        self.db.add(address)
        self.db.flush()
        return address

    def rollback(self):
        self.db.rollback()
