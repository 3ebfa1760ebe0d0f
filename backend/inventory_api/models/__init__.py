from .user import AppUser, UserStore
from .store import Store
from .catalog import Category, Attribute, AttributeValue, Product, ProductVariant, ProductAttribute, VariantAttributeValue
from .inventory import Inventory, InventoryTransaction, InventoryTransfer
from .customer import Customer, CustomerAddress
from .order import Order, OrderItem, OrderStatusHistory, PaymentRecord
from .refund import Refund, RefundItem
from .purchase import Purchase, PurchaseItem
from .installation import Installation, InstallationItem
__all__ = [
    "AppUser", "UserStore", "Store",
    "Category", "Attribute", "AttributeValue", "Product", "ProductVariant", "ProductAttribute", "VariantAttributeValue",
    "Inventory", "InventoryTransaction", "InventoryTransfer",
    "Customer", "CustomerAddress",
    "Order", "OrderItem", "OrderStatusHistory", "PaymentRecord",
    "Refund", "RefundItem",
    "Purchase", "PurchaseItem",
    "Installation", "InstallationItem",
]
