# storefront/services/customer_service.py
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.customer import CustomerModel
from storefront.domain.errors import ValidationFailed
from storefront.repos.customer_repo import CustomerRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CustomerService:
    """Maps an authenticated user id onto the customer profile that owns carts and orders."""

    def __init__(self, db: Session):
        self.repo = CustomerRepo(db)

    def resolve_customer_id(self, user_id) -> int:
        user_id = str(user_id).strip() if user_id is not None else ""
        if not user_id:
            raise ValidationFailed("user_id is required")

        existing = self.repo.get_by_user_id(user_id)
        if existing:
            return existing.id

        try:
            created = self.repo.create_customer(CustomerModel(user_id=user_id))
        except IntegrityError:
            # another request created the profile first
            self.repo.rollback()
            existing = self.repo.get_by_user_id(user_id)
            if existing is None:
                raise
            return existing.id

        logger.info(f"Created customer profile {created.id} for user {user_id}")
        return created.id
