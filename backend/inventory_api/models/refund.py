from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from ..core.money import money_property

class Refund(Base):
    __tablename__ = "Refund"

    RefundID          = Column(Integer, primary_key=True, autoincrement=True)
    OrderID           = Column(Integer, ForeignKey("SalesOrder.OrderID", ondelete="CASCADE"), nullable=False)
    UserID            = Column(Integer, ForeignKey("AppUser.UserID"))
    TotalRefundCents  = Column(Integer, nullable=False, default=0, server_default=text("0"))
    Reason            = Column(String(255), nullable=False)
    Notes             = Column(Text)
    ShouldRestock     = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    CreatedAt         = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("TotalRefundCents >= 0", name="CK_Refund_Total_NonNeg"),
    )

    TotalRefundAmount = money_property("TotalRefundCents")

    order = relationship("Order", back_populates="refunds")
    user  = relationship("AppUser")
    items = relationship(
        "RefundItem", back_populates="refund",
        cascade="all, delete-orphan", order_by="RefundItem.RefundItemID",
    )


class RefundItem(Base):
    __tablename__ = "RefundItem"

    RefundItemID  = Column(Integer, primary_key=True, autoincrement=True)
    RefundID      = Column(Integer, ForeignKey("Refund.RefundID", ondelete="CASCADE"), nullable=False)
    OrderItemID   = Column(Integer, ForeignKey("OrderItem.ItemID"), nullable=False)
    Quantity      = Column(Integer, nullable=False)
    RefundCents   = Column(Integer, nullable=False, default=0, server_default=text("0"))
    Restocked     = Column(Boolean, nullable=False, default=False, server_default=text("0"))

    __table_args__ = (
        CheckConstraint("Quantity > 0", name="CK_RefundItem_Quantity_Positive"),
    )

    RefundSubtotal = money_property("RefundCents")

    refund     = relationship("Refund", back_populates="items")
    order_item = relationship("OrderItem")

    @property
    def ProductName(self):
        return self.order_item.ProductName if self.order_item else None

    @property
    def Sku(self):
        return self.order_item.Sku if self.order_item else None
