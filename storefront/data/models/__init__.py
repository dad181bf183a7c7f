#all models imported here so they are registered in Base.metadata

from storefront.data.models.product import ProductModel
from storefront.data.models.coupon import CouponModel
from storefront.data.models.address import AddressModel
from storefront.data.models.order import OrderModel
from storefront.data.models.transaction import TransactionModel

__all__ = ["ProductModel", "CouponModel", "AddressModel", "OrderModel", "TransactionModel"]
