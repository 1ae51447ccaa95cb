"""
Models package
"""
from storefront.models.order import Order, OrderStatus, Counter
from storefront.models.product import Product
from storefront.models.user import User, Role

__all__ = ["Order", "OrderStatus", "Counter", "Product", "User", "Role"]
