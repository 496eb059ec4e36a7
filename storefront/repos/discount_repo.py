# storefront/repos/discount_repo.py
from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from storefront.data.models.discount import DiscountCodeModel


def normalize_code(code: str) -> str:
    return code.strip().upper()


class DiscountRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> DiscountCodeModel | None:
        return self.db.execute(
            select(DiscountCodeModel)
            .where(DiscountCodeModel.code == normalize_code(code))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def increment_usage(self, discount_id: int) -> bool:
        rowcount = self.db.execute(
            update(DiscountCodeModel)
            .where(
                DiscountCodeModel.id == discount_id,
                or_(
                    DiscountCodeModel.max_uses.is_(None),
                    DiscountCodeModel.used_count < DiscountCodeModel.max_uses,
                ),
            )
            .values(used_count=DiscountCodeModel.used_count + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        return rowcount == 1
