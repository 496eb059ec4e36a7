# storefront/data/models/settings.py
from sqlalchemy import Column, String, Numeric

from storefront.data.database import Base

DEFAULT_SETTINGS_ID = "default"


class StoreSettingsModel(Base):
    __tablename__ = "store_settings"

    id = Column(String(20), primary_key=True, default=DEFAULT_SETTINGS_ID)
    name = Column(String(255), nullable=False, default="Store")
    currency = Column(String(3), nullable=False, default="USD")

    shipping_rate = Column(Numeric(10, 2), nullable=True)
    free_shipping_threshold = Column(Numeric(10, 2), nullable=True)
    default_tax_rate = Column(Numeric(5, 2), nullable=True)  # percent, e.g. 8.50
