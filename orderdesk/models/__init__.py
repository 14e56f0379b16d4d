from orderdesk.models.manufacturer import Manufacturer, Product, OptionMapping
from orderdesk.models.order import Order, OrderStatus
from orderdesk.models.settings import Setting, ExclusionPattern, CourierMapping

__all__ = [
    "Manufacturer",
    "Product",
    "OptionMapping",
    "Order",
    "OrderStatus",
    "Setting",
    "ExclusionPattern",
    "CourierMapping",
]
