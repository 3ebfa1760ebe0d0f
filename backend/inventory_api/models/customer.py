from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from ..core.money import money_property

class Customer(Base):
    __tablename__ = "Customer"

    CustomerID               = Column(Integer, primary_key=True, autoincrement=True)
    Name                     = Column(String(100), nullable=False)
    Phone                    = Column(String(50))
    IsCompany                = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    TaxID                    = Column(String(50))
    IndustryType             = Column(String(50))
    PaymentType              = Column(String(50))
    ContactAddress           = Column(String(255))
    PriorityLevel            = Column(String(10), nullable=False, default="normal", server_default=text("'normal'"))
    IsPriorityCustomer       = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    TotalUnpaidAmountCents   = Column(Integer, nullable=False, default=0, server_default=text("0"))
    TotalCompletedAmountCents = Column(Integer, nullable=False, default=0, server_default=text("0"))
    CreatedAt                = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("PriorityLevel IN ('vip','high','normal','low')", name="CK_Customer_PriorityLevel"),
    )

    TotalUnpaidAmount    = money_property("TotalUnpaidAmountCents")
    TotalCompletedAmount = money_property("TotalCompletedAmountCents")

    addresses = relationship(
        "CustomerAddress", back_populates="customer",
        cascade="all, delete-orphan", order_by="CustomerAddress.AddressID",
    )
    orders = relationship("Order", back_populates="customer")

    @property
    def DefaultAddress(self):
        for a in self.addresses:
            if a.IsDefault:
                return a.Address
        return None


class CustomerAddress(Base):
    __tablename__ = "CustomerAddress"

    AddressID  = Column(Integer, primary_key=True, autoincrement=True)
    CustomerID = Column(Integer, ForeignKey("Customer.CustomerID", ondelete="CASCADE"), nullable=False)
    Address    = Column(String(255), nullable=False)
    IsDefault  = Column(Boolean, nullable=False, default=False, server_default=text("0"))

    customer = relationship("Customer", back_populates="addresses")
