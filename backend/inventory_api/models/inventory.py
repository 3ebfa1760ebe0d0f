from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, JSON,
    CheckConstraint, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from ..domain.constants import DEFAULT_LOW_STOCK_THRESHOLD

class Inventory(Base):
    __tablename__ = "Inventory"

    InventoryID       = Column(Integer, primary_key=True, autoincrement=True)
    VariantID         = Column(Integer, ForeignKey("ProductVariant.VariantID", ondelete="CASCADE"), nullable=False)
    StoreID           = Column(Integer, ForeignKey("Store.StoreID"), nullable=False)
    Quantity          = Column(Integer, nullable=False, default=0, server_default=text("0"))
    LowStockThreshold = Column(Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD,
                               server_default=text(str(DEFAULT_LOW_STOCK_THRESHOLD)))
    UpdatedAt         = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("VariantID", "StoreID", name="UQ_Inventory_Variant_Store"),
        CheckConstraint("Quantity >= 0",          name="CK_Inventory_Quantity_NonNeg"),
        CheckConstraint("LowStockThreshold >= 0", name="CK_Inventory_Threshold_NonNeg"),
    )

    variant      = relationship("ProductVariant", back_populates="inventories")
    store        = relationship("Store", back_populates="inventories")
    transactions = relationship(
        "InventoryTransaction", back_populates="inventory",
        cascade="all, delete-orphan", order_by="desc(InventoryTransaction.TxnID)",
    )

    @property
    def IsLowStock(self) -> bool:
        return 0 < int(self.Quantity or 0) <= int(self.LowStockThreshold or 0)

    @property
    def IsOutOfStock(self) -> bool:
        return int(self.Quantity or 0) == 0

    @property
    def Sku(self):
        return self.variant.Sku if self.variant else None

    @property
    def ProductName(self):
        return self.variant.ProductName if self.variant else None

    @property
    def StoreName(self):
        return self.store.Name if self.store else None


class InventoryTransaction(Base):
    __tablename__ = "InventoryTransaction"

    TxnID          = Column(Integer, primary_key=True, autoincrement=True)
    InventoryID    = Column(Integer, ForeignKey("Inventory.InventoryID", ondelete="CASCADE"), nullable=False)
    UserID         = Column(Integer, ForeignKey("AppUser.UserID"))
    OrderItemID    = Column(Integer, index=True)  # sipariş kalemi; kalem silinse de hareket kalır
    TxnType        = Column(String(20), nullable=False)
    Quantity       = Column(Integer, nullable=False)  # işaretli değişim
    BeforeQuantity = Column(Integer, nullable=False)
    AfterQuantity  = Column(Integer, nullable=False)
    Notes          = Column(String(500))
    Meta           = Column("Metadata", JSON)
    CreatedAt      = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "TxnType IN ('addition','reduction','adjustment','transfer_in','transfer_out',"
            "'transfer_cancel','deduct','return','purchase')",
            name="CK_InvTxn_Type",
        ),
        Index("IX_InvTxn_Inventory_Created", "InventoryID", "CreatedAt"),
    )

    inventory = relationship("Inventory", back_populates="transactions")
    user      = relationship("AppUser")


class InventoryTransfer(Base):
    __tablename__ = "InventoryTransfer"

    TransferID  = Column(Integer, primary_key=True, autoincrement=True)
    FromStoreID = Column(Integer, ForeignKey("Store.StoreID"), nullable=False)
    ToStoreID   = Column(Integer, ForeignKey("Store.StoreID"), nullable=False)
    VariantID   = Column(Integer, ForeignKey("ProductVariant.VariantID"), nullable=False)
    OrderID     = Column(Integer, ForeignKey("SalesOrder.OrderID"))
    UserID      = Column(Integer, ForeignKey("AppUser.UserID"))
    Quantity    = Column(Integer, nullable=False)
    Status      = Column(String(20), nullable=False, default="completed")
    Notes       = Column(Text)
    CreatedAt   = Column(DateTime, nullable=False, default=utcnow)
    UpdatedAt   = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("Quantity > 0",             name="CK_Transfer_Quantity_Positive"),
        CheckConstraint("FromStoreID <> ToStoreID", name="CK_Transfer_DifferentStores"),
        CheckConstraint(
            "Status IN ('pending','in_transit','completed','cancelled')",
            name="CK_Transfer_Status",
        ),
    )

    from_store = relationship("Store", foreign_keys=[FromStoreID])
    to_store   = relationship("Store", foreign_keys=[ToStoreID])
    variant    = relationship("ProductVariant")
    order      = relationship("Order", back_populates="transfers")
