# backend/inventory_api/domain/constants.py

"""
Uygulama genelinde durum kodları, hareket tipleri ve not şablonlarının tek kaynağı.
"""

import os
from typing import Final, Dict

# ---- Roller ----
ROLES: Final = ("admin", "staff", "viewer", "installer")

# ---- Stok hareket tipleri ----
TXN_ADDITION: Final[str] = "addition"
TXN_REDUCTION: Final[str] = "reduction"
TXN_ADJUSTMENT: Final[str] = "adjustment"
TXN_TRANSFER_IN: Final[str] = "transfer_in"
TXN_TRANSFER_OUT: Final[str] = "transfer_out"
TXN_TRANSFER_CANCEL: Final[str] = "transfer_cancel"
TXN_DEDUCT: Final[str] = "deduct"
TXN_RETURN: Final[str] = "return"
TXN_PURCHASE: Final[str] = "purchase"

TXN_TYPES: Final = (
    TXN_ADDITION, TXN_REDUCTION, TXN_ADJUSTMENT,
    TXN_TRANSFER_IN, TXN_TRANSFER_OUT, TXN_TRANSFER_CANCEL,
    TXN_DEDUCT, TXN_RETURN, TXN_PURCHASE,
)

DEFAULT_LOW_STOCK_THRESHOLD: Final[int] = int(os.getenv("DEFAULT_LOW_STOCK_THRESHOLD", "5"))

# ---- Transfer ----
TRANSFER_STATUSES: Final = ("pending", "in_transit", "completed", "cancelled")
TRANSFER_CANCEL_NOTE: Final[str] = "已取消。原因：{}"

# ---- Sipariş ----
SHIPPING_STATUSES: Final = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES: Final = ("pending", "unpaid", "partial", "paid", "refunded")
ITEM_STATUSES: Final = ("pending", "confirmed", "processing", "completed", "cancelled")
FULFILLMENT_PRIORITIES: Final = ("urgent", "high", "normal", "low")
LOCKED_SHIPPING_STATUSES: Final = ("shipped", "delivered")

REASON_ORDER_DEDUCT: Final[str] = "Sipariş #{}"
REASON_ORDER_RETURN: Final[str] = "Sipariş iade #{}"
REASON_ORDER_CANCEL: Final[str] = "Sipariş iptal #{}"
REASON_REFUND_RESTOCK: Final[str] = "İade #{} (Sipariş #{})"
REASON_ORDER_STORE_MOVE: Final[str] = "Sipariş mağaza değişikliği #{}"
REASON_BACKORDER_FULFIL: Final[str] = "Bekleyen sipariş karşılama #{}"
STOCK_DECISIONS: Final = ("transfer", "purchase", "mixed")

# ---- Satın alma ----
PURCHASE_STATUSES: Final = (
    "pending", "confirmed", "in_transit", "received",
    "partially_received", "completed", "cancelled",
)
PURCHASE_TRANSITIONS: Final[Dict[str, tuple]] = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("in_transit", "cancelled"),
    "in_transit": ("received", "partially_received"),
    "received": ("completed", "partially_received"),
    "partially_received": ("completed", "received"),
    "completed": (),
    "cancelled": (),
}
PURCHASE_EDITABLE_STATUSES: Final = ("pending", "confirmed")
RECEIPT_STATUSES: Final = ("pending", "partial", "completed")
REASON_PO_RECEIVE: Final[str] = "Satın alma teslim #{}"

# ---- Kurulum ----
INSTALLATION_STATUSES: Final = ("pending", "scheduled", "in_progress", "completed", "cancelled")
INSTALLATION_CANCEL_NOTE: Final[str] = "取消原因：{}"

# ---- Müşteri / öncelik ----
CUSTOMER_LEVELS: Final = ("vip", "high", "normal", "low")

CUSTOMER_LEVEL_WEIGHTS: Final[Dict[str, int]] = {"vip": 100, "high": 50, "normal": 0, "low": -20}
ORDER_PRIORITY_WEIGHTS: Final[Dict[str, int]] = {"urgent": 80, "high": 40, "normal": 0, "low": -10}
PRIORITY_CUSTOMER_BONUS: Final[int] = 30
VIP_CHANNEL_BONUS: Final[int] = 25
WAITING_DAY_POINTS: Final[int] = 2
DEADLINE_MAX_POINTS: Final[int] = 50
DEADLINE_WINDOW_DAYS: Final[int] = 7
FIFO_BASE_SCORE: Final[int] = 1000
PRIORITY_DEADLINE_BONUS: Final[int] = 40
PRIORITY_DEADLINE_HOURS: Final[int] = 48
REASON_DEADLINE_DAYS: Final[int] = 3

# ---- İzleme ----
REORDER_LEAD_TIME_DAYS: Final[int] = 7
SAFETY_STOCK_DAYS: Final[int] = 3
MIN_REORDER_QTY: Final[int] = 10
