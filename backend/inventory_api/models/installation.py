from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, ForeignKey, JSON, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow

class Installation(Base):
    __tablename__ = "Installation"

    InstallationID      = Column(Integer, primary_key=True, autoincrement=True)
    InstallationNumber  = Column(String(30), nullable=False, unique=True)
    OrderID             = Column(Integer, ForeignKey("SalesOrder.OrderID"))
    InstallerUserID     = Column(Integer, ForeignKey("AppUser.UserID"))
    CreatedBy           = Column(Integer, ForeignKey("AppUser.UserID"))
    CustomerName        = Column(String(100), nullable=False)
    CustomerPhone       = Column(String(50))
    InstallationAddress = Column(String(255), nullable=False)
    Status              = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    ScheduledDate       = Column(Date)
    ActualStartTime     = Column(DateTime)
    ActualEndTime       = Column(DateTime)
    Notes               = Column(Text)
    CreatedAt           = Column(DateTime, nullable=False, default=utcnow)
    UpdatedAt           = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "Status IN ('pending','scheduled','in_progress','completed','cancelled')",
            name="CK_Installation_Status",
        ),
    )

    order     = relationship("Order")
    installer = relationship("AppUser", foreign_keys=[InstallerUserID])
    creator   = relationship("AppUser", foreign_keys=[CreatedBy])
    items     = relationship(
        "InstallationItem", back_populates="installation",
        cascade="all, delete-orphan", order_by="InstallationItem.InstallationItemID",
    )

    @property
    def InstallerName(self):
        if not self.installer:
            return None
        return self.installer.FullName or self.installer.Username

    @property
    def OrderNumber(self):
        return self.order.OrderNumber if self.order else None


class InstallationItem(Base):
    __tablename__ = "InstallationItem"

    InstallationItemID = Column(Integer, primary_key=True, autoincrement=True)
    InstallationID     = Column(Integer, ForeignKey("Installation.InstallationID", ondelete="CASCADE"), nullable=False)
    OrderItemID        = Column(Integer, ForeignKey("OrderItem.ItemID"))
    VariantID          = Column(Integer, ForeignKey("ProductVariant.VariantID"))
    ProductName        = Column(String(200), nullable=False)
    Sku                = Column(String(100))
    Quantity           = Column(Integer, nullable=False, default=1)
    Specifications     = Column(JSON)
    Status             = Column(String(20), nullable=False, default="pending", server_default=text("'pending'"))
    Notes              = Column(String(500))

    __table_args__ = (
        CheckConstraint("Quantity > 0", name="CK_InstallationItem_Quantity_Positive"),
        CheckConstraint("Status IN ('pending','completed')", name="CK_InstallationItem_Status"),
    )

    installation = relationship("Installation", back_populates="items")
