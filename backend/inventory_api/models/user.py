from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Table, CheckConstraint, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow

ALLOWED_ROLES = ("admin", "staff", "viewer", "installer")

# Kullanıcı <-> mağaza ataması (çoktan çoğa)
UserStore = Table(
    "UserStore",
    Base.metadata,
    Column("UserID",  Integer, ForeignKey("AppUser.UserID", ondelete="CASCADE"), primary_key=True),
    Column("StoreID", Integer, ForeignKey("Store.StoreID",  ondelete="CASCADE"), primary_key=True),
)

class AppUser(Base):
    __tablename__ = "AppUser"

    UserID         = Column(Integer, primary_key=True, autoincrement=True)
    Username       = Column(String(50),  nullable=False, unique=True)
    FullName       = Column(String(100))
    Email          = Column(String(200))
    HashedPassword = Column(String(255), nullable=False)
    Role           = Column(String(20),  nullable=False, default="viewer", server_default=text("'viewer'"))
    IsActive       = Column(Boolean,     nullable=False, default=True, server_default=text("1"))
    CreatedAt      = Column(DateTime,    nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "Role in ('admin','staff','viewer','installer')",
            name="CK_AppUser_Role"
        ),
    )

    stores = relationship("Store", secondary=UserStore, back_populates="users")

    @property
    def StoreIDs(self):
        return [s.StoreID for s in self.stores]
