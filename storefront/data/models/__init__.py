# import every model so SQLAlchemy registers it on Base.metadata

from storefront.data.models.customer import CustomerModel, AddressModel
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.discount import DiscountCodeModel
from storefront.data.models.settings import StoreSettingsModel
from storefront.data.models.order import OrderModel, OrderItemModel, PaymentModel, FulfillmentModel

__all__ = [
    "CustomerModel",
    "AddressModel",
    "ProductModel",
    "ProductVariantModel",
    "CartModel",
    "CartItemModel",
    "DiscountCodeModel",
    "StoreSettingsModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentModel",
    "FulfillmentModel",
]
