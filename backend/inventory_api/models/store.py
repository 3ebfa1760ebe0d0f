from sqlalchemy import Column, Integer, String, Boolean, DateTime, text
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from .user import UserStore

class Store(Base):
    __tablename__ = "Store"

    StoreID   = Column(Integer, primary_key=True, autoincrement=True)
    Name      = Column(String(100), nullable=False, unique=True)
    Address   = Column(String(255))
    Phone     = Column(String(50))
    IsActive  = Column(Boolean,  nullable=False, default=True, server_default=text("1"))
    CreatedAt = Column(DateTime, nullable=False, default=utcnow)

    users       = relationship("AppUser",   secondary=UserStore, back_populates="stores")
    inventories = relationship("Inventory", back_populates="store")
