from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, DECIMAL, ForeignKey, JSON,
    CheckConstraint, Index, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from ..core.money import money_property

class Order(Base):
    # ORDER ayrılmış kelime
    __tablename__ = "SalesOrder"

    OrderID              = Column(Integer, primary_key=True, autoincrement=True)
    OrderNumber          = Column(String(30), nullable=False, unique=True)
    CustomerID           = Column(Integer, ForeignKey("Customer.CustomerID"), nullable=False)
    StoreID              = Column(Integer, ForeignKey("Store.StoreID"))
    CreatorUserID        = Column(Integer, ForeignKey("AppUser.UserID"))
    ShippingStatus       = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    PaymentStatus        = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    SubtotalCents        = Column(Integer, nullable=False, default=0, server_default=text("0"))
    ShippingFeeCents     = Column(Integer, nullable=False, default=0, server_default=text("0"))
    TaxCents             = Column(Integer, nullable=False, default=0, server_default=text("0"))
    DiscountAmountCents  = Column(Integer, nullable=False, default=0, server_default=text("0"))
    GrandTotalCents      = Column(Integer, nullable=False, default=0, server_default=text("0"))
    PaidAmountCents      = Column(Integer, nullable=False, default=0, server_default=text("0"))
    PaymentMethod        = Column(String(50))
    OrderSource          = Column(String(50))
    ShippingAddress      = Column(String(255))
    Notes                = Column(Text)
    FulfillmentPriority  = Column(String(10), nullable=False, default="normal", server_default=text("'normal'"))
    ExpectedDeliveryDate = Column(Date)
    TrackingNumber       = Column(String(100))
    Carrier              = Column(String(100))
    EstimatedDeliveryDate = Column(Date)
    CancellationReason   = Column(String(255))
    PaidAt               = Column(DateTime)
    ShippedAt            = Column(DateTime)
    CancelledAt          = Column(DateTime)
    CreatedAt            = Column(DateTime, nullable=False, default=utcnow)
    UpdatedAt            = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "ShippingStatus IN ('pending','processing','shipped','delivered','cancelled')",
            name="CK_Order_ShippingStatus",
        ),
        CheckConstraint(
            "PaymentStatus IN ('pending','unpaid','partial','paid','refunded')",
            name="CK_Order_PaymentStatus",
        ),
        CheckConstraint("PaidAmountCents >= 0", name="CK_Order_PaidAmount_NonNeg"),
        Index("IX_Order_CreatedAt", "CreatedAt"),
    )

    Subtotal       = money_property("SubtotalCents")
    ShippingFee    = money_property("ShippingFeeCents")
    Tax            = money_property("TaxCents")
    DiscountAmount = money_property("DiscountAmountCents")
    GrandTotal     = money_property("GrandTotalCents")
    PaidAmount     = money_property("PaidAmountCents")

    customer  = relationship("Customer", back_populates="orders")
    store     = relationship("Store")
    creator   = relationship("AppUser")
    items     = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.ItemID",
    )
    histories = relationship(
        "OrderStatusHistory", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderStatusHistory.HistoryID",
    )
    payments  = relationship(
        "PaymentRecord", back_populates="order",
        cascade="all, delete-orphan", order_by="PaymentRecord.PaymentID",
    )
    refunds   = relationship(
        "Refund", back_populates="order",
        cascade="all, delete-orphan", order_by="Refund.RefundID",
    )
    transfers = relationship("InventoryTransfer", back_populates="order")

    @property
    def CustomerName(self):
        return self.customer.Name if self.customer else None

    @property
    def RemainingAmountCents(self) -> int:
        return max(0, int(self.GrandTotalCents or 0) - int(self.PaidAmountCents or 0))


class OrderItem(Base):
    __tablename__ = "OrderItem"

    ItemID               = Column(Integer, primary_key=True, autoincrement=True)
    OrderID              = Column(Integer, ForeignKey("SalesOrder.OrderID", ondelete="CASCADE"), nullable=False)
    VariantID            = Column(Integer, ForeignKey("ProductVariant.VariantID"))  # NULL = özel ürün
    PurchaseItemID       = Column(Integer, ForeignKey("PurchaseItem.PurchaseItemID"))
    ProductName          = Column(String(200), nullable=False)
    Sku                  = Column(String(100), nullable=False)
    PriceCents           = Column(Integer, nullable=False, default=0, server_default=text("0"))
    CostCents            = Column(Integer, nullable=False, default=0, server_default=text("0"))
    DiscountAmountCents  = Column(Integer, nullable=False, default=0, server_default=text("0"))
    TaxRate              = Column(DECIMAL(5, 2), nullable=False, default=0, server_default=text("0"))
    Quantity             = Column(Integer, nullable=False)
    IsStockedSale        = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    IsBackorder          = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    Status               = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    FulfilledQuantity    = Column(Integer, nullable=False, default=0, server_default=text("0"))
    IsFulfilled          = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    FulfilledAt          = Column(DateTime)
    PriorityDeadline     = Column(DateTime)
    CustomSpecifications = Column(JSON)
    CreatedAt            = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("Quantity > 0",           name="CK_OrderItem_Quantity_Positive"),
        CheckConstraint("FulfilledQuantity >= 0", name="CK_OrderItem_Fulfilled_NonNeg"),
    )

    Price          = money_property("PriceCents")
    Cost           = money_property("CostCents")
    DiscountAmount = money_property("DiscountAmountCents")

    order         = relationship("Order", back_populates="items")
    variant       = relationship("ProductVariant")
    purchase_item = relationship("PurchaseItem", back_populates="order_items")

    @property
    def LineTotalCents(self) -> int:
        return int(self.PriceCents or 0) * int(self.Quantity or 0) - int(self.DiscountAmountCents or 0)

    @property
    def RemainingQuantity(self) -> int:
        return max(0, int(self.Quantity or 0) - int(self.FulfilledQuantity or 0))

    @property
    def IsPartiallyFulfilled(self) -> bool:
        return 0 < int(self.FulfilledQuantity or 0) < int(self.Quantity or 0)

    @property
    def IsCustom(self) -> bool:
        return self.VariantID is None

    def add_fulfilled_quantity(self, qty: int, at=None) -> int:
        """Sipariş miktarını aşmadan karşılanan adedi artır; eklenen adedi döndürür."""
        add = max(0, min(int(qty), self.RemainingQuantity))
        if add:
            self.FulfilledQuantity = int(self.FulfilledQuantity or 0) + add
        if self.RemainingQuantity == 0:
            self.IsFulfilled = True
            self.FulfilledAt = self.FulfilledAt or at or utcnow()
        return add

    def mark_fulfilled(self, at=None) -> None:
        self.FulfilledQuantity = int(self.Quantity or 0)
        self.IsFulfilled = True
        self.FulfilledAt = at or utcnow()

    def reset_fulfillment(self) -> None:
        self.FulfilledQuantity = 0
        self.IsFulfilled = False
        self.FulfilledAt = None


class OrderStatusHistory(Base):
    __tablename__ = "OrderStatusHistory"

    HistoryID  = Column(Integer, primary_key=True, autoincrement=True)
    OrderID    = Column(Integer, ForeignKey("SalesOrder.OrderID", ondelete="CASCADE"), nullable=False)
    UserID     = Column(Integer, ForeignKey("AppUser.UserID"))
    StatusType = Column(String(20), nullable=False)  # shipping | payment | refund | item | store
    FromStatus = Column(String(30))
    ToStatus   = Column(String(30), nullable=False)
    Notes      = Column(String(500))
    CreatedAt  = Column(DateTime, nullable=False, default=utcnow)

    order = relationship("Order", back_populates="histories")


class PaymentRecord(Base):
    __tablename__ = "PaymentRecord"

    PaymentID     = Column(Integer, primary_key=True, autoincrement=True)
    OrderID       = Column(Integer, ForeignKey("SalesOrder.OrderID", ondelete="CASCADE"), nullable=False)
    UserID        = Column(Integer, ForeignKey("AppUser.UserID"))
    AmountCents   = Column(Integer, nullable=False)
    PaymentMethod = Column(String(50), nullable=False)
    PaymentDate   = Column(DateTime, nullable=False, default=utcnow)
    Notes         = Column(String(500))
    CreatedAt     = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("AmountCents > 0", name="CK_Payment_Amount_Positive"),
    )

    Amount = money_property("AmountCents")

    order = relationship("Order", back_populates="payments")
