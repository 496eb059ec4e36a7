# storefront/repos/settings_repo.py
from sqlalchemy.orm import Session

from storefront.data.models.settings import StoreSettingsModel, DEFAULT_SETTINGS_ID
from storefront.domain.pricing import ShippingTaxConfig, ZERO, to_decimal


class SettingsRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_settings(self) -> StoreSettingsModel | None:
        return self.db.get(StoreSettingsModel, DEFAULT_SETTINGS_ID)

    def get_shipping_and_tax_config(self) -> ShippingTaxConfig:
        settings = self.get_settings()
        if settings is None:
            return ShippingTaxConfig()

        threshold = settings.free_shipping_threshold
        return ShippingTaxConfig(
            flat_shipping_rate=to_decimal(settings.shipping_rate) if settings.shipping_rate is not None else ZERO,
            free_shipping_threshold=to_decimal(threshold) if threshold is not None else None,
            tax_rate_percent=to_decimal(settings.default_tax_rate) if settings.default_tax_rate is not None else ZERO,
        )
