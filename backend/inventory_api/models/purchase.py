from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, Index, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from ..core.money import money_property

class Purchase(Base):
    __tablename__ = "Purchase"

    PurchaseID        = Column(Integer, primary_key=True, autoincrement=True)
    OrderNumber       = Column(String(30), nullable=False, unique=True)
    StoreID           = Column(Integer, ForeignKey("Store.StoreID"), nullable=False)
    UserID            = Column(Integer, ForeignKey("AppUser.UserID"))
    PurchasedAt       = Column(DateTime, nullable=False, default=utcnow)
    ShippingCostCents = Column(Integer, nullable=False, default=0, server_default=text("0"))
    TotalAmountCents  = Column(Integer, nullable=False, default=0, server_default=text("0"))
    Status            = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    Notes             = Column(Text)
    ReceivedAt        = Column(DateTime)
    CreatedAt         = Column(DateTime, nullable=False, default=utcnow)
    UpdatedAt         = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("ShippingCostCents >= 0", name="CK_Purchase_Shipping_NonNeg"),
        CheckConstraint(
            "Status IN ('pending','confirmed','in_transit','received','partially_received','completed','cancelled')",
            name="CK_Purchase_Status",
        ),
        Index("IX_Purchase_PurchasedAt", "PurchasedAt"),
    )

    ShippingCost = money_property("ShippingCostCents")
    TotalAmount  = money_property("TotalAmountCents")

    store = relationship("Store")
    user  = relationship("AppUser")
    items = relationship(
        "PurchaseItem", back_populates="purchase",
        cascade="all, delete-orphan", order_by="PurchaseItem.PurchaseItemID",
    )

    @property
    def StoreName(self):
        return self.store.Name if self.store else None


class PurchaseItem(Base):
    __tablename__ = "PurchaseItem"

    PurchaseItemID             = Column(Integer, primary_key=True, autoincrement=True)
    PurchaseID                 = Column(Integer, ForeignKey("Purchase.PurchaseID", ondelete="CASCADE"), nullable=False)
    VariantID                  = Column(Integer, ForeignKey("ProductVariant.VariantID"), nullable=False)
    Quantity                   = Column(Integer, nullable=False)
    UnitPriceCents             = Column(Integer, nullable=False, default=0, server_default=text("0"))
    CostPriceCents             = Column(Integer, nullable=False, default=0, server_default=text("0"))
    AllocatedShippingCostCents = Column(Integer, nullable=False, default=0, server_default=text("0"))
    TotalCostPriceCents        = Column(Integer, nullable=False, default=0, server_default=text("0"))
    ReceivedQuantity           = Column(Integer, nullable=False, default=0, server_default=text("0"))
    ReceiptStatus              = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))

    __table_args__ = (
        CheckConstraint("Quantity > 0",          name="CK_PurchaseItem_Quantity_Positive"),
        CheckConstraint("ReceivedQuantity >= 0", name="CK_PurchaseItem_Received_NonNeg"),
        CheckConstraint("ReceiptStatus IN ('pending','partial','completed')", name="CK_PurchaseItem_ReceiptStatus"),
    )

    UnitPrice             = money_property("UnitPriceCents")
    CostPrice             = money_property("CostPriceCents")
    AllocatedShippingCost = money_property("AllocatedShippingCostCents")
    TotalCostPrice        = money_property("TotalCostPriceCents")

    purchase    = relationship("Purchase", back_populates="items")
    variant     = relationship("ProductVariant")
    order_items = relationship("OrderItem", back_populates="purchase_item")

    @property
    def Sku(self):
        return self.variant.Sku if self.variant else None

    @property
    def ProductName(self):
        return self.variant.ProductName if self.variant else None

    @property
    def PendingQuantity(self) -> int:
        return max(0, int(self.Quantity or 0) - int(self.ReceivedQuantity or 0))
