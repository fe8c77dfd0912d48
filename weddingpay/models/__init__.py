from weddingpay.models.customer import Customer
from weddingpay.models.identity_account import IdentityAccount
from weddingpay.models.product import Product, ProductStatus
from weddingpay.models.coupon import Coupon, DiscountType
from weddingpay.models.order import Order, OrderStatus
from weddingpay.models.gift import Gift, GiftReservation, ReservationStatus
from weddingpay.models.audit_log import AuditLog

__all__ = [
    "Customer",
    "IdentityAccount",
    "Product",
    "ProductStatus",
    "Coupon",
    "DiscountType",
    "Order",
    "OrderStatus",
    "Gift",
    "GiftReservation",
    "ReservationStatus",
    "AuditLog",
]
