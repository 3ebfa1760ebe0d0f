from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Table,
    CheckConstraint, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from ..core.db import Base, utcnow
from ..core.money import money_property

# Ürün <-> kullandığı özellikler
ProductAttribute = Table(
    "ProductAttribute",
    Base.metadata,
    Column("ProductID",   Integer, ForeignKey("Product.ProductID",     ondelete="CASCADE"), primary_key=True),
    Column("AttributeID", Integer, ForeignKey("Attribute.AttributeID", ondelete="CASCADE"), primary_key=True),
)

# Varyant <-> özellik değerleri (örn. 顏色=紅)
VariantAttributeValue = Table(
    "VariantAttributeValue",
    Base.metadata,
    Column("VariantID", Integer, ForeignKey("ProductVariant.VariantID", ondelete="CASCADE"), primary_key=True),
    Column("ValueID",   Integer, ForeignKey("AttributeValue.ValueID",   ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    __tablename__ = "Category"

    CategoryID  = Column(Integer, primary_key=True, autoincrement=True)
    Name        = Column(String(100), nullable=False)
    Description = Column(String(255))
    ParentID    = Column(Integer, ForeignKey("Category.CategoryID"))
    SortOrder   = Column(Integer, nullable=False, default=0, server_default=text("0"))
    CreatedAt   = Column(DateTime, nullable=False, default=utcnow)

    parent   = relationship("Category", remote_side=[CategoryID], back_populates="children")
    children = relationship("Category", back_populates="parent", order_by="Category.SortOrder")
    products = relationship("Product",  back_populates="category")


class Attribute(Base):
    __tablename__ = "Attribute"

    AttributeID = Column(Integer, primary_key=True, autoincrement=True)
    Name        = Column(String(100), nullable=False, unique=True)

    values = relationship(
        "AttributeValue", back_populates="attribute",
        cascade="all, delete-orphan", order_by="AttributeValue.ValueID",
    )


class AttributeValue(Base):
    __tablename__ = "AttributeValue"

    ValueID     = Column(Integer, primary_key=True, autoincrement=True)
    AttributeID = Column(Integer, ForeignKey("Attribute.AttributeID", ondelete="CASCADE"), nullable=False)
    Value       = Column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("AttributeID", "Value", name="UQ_AttributeValue_Attr_Value"),
    )

    attribute = relationship("Attribute", back_populates="values")


class Product(Base):
    __tablename__ = "Product"

    ProductID   = Column(Integer, primary_key=True, autoincrement=True)
    Name        = Column(String(200), nullable=False)
    Description = Column(Text)
    CategoryID  = Column(Integer, ForeignKey("Category.CategoryID"))
    CreatedAt   = Column(DateTime, nullable=False, default=utcnow)

    category   = relationship("Category", back_populates="products")
    attributes = relationship("Attribute", secondary=ProductAttribute)
    variants   = relationship(
        "ProductVariant", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductVariant.VariantID",
    )


class ProductVariant(Base):
    __tablename__ = "ProductVariant"

    VariantID              = Column(Integer, primary_key=True, autoincrement=True)
    ProductID              = Column(Integer, ForeignKey("Product.ProductID", ondelete="CASCADE"), nullable=False)
    Sku                    = Column(String(100), nullable=False, unique=True)
    PriceCents             = Column(Integer, nullable=False, default=0, server_default=text("0"))
    CostPriceCents         = Column(Integer, nullable=False, default=0, server_default=text("0"))
    AverageCostCents       = Column(Integer, nullable=False, default=0, server_default=text("0"))
    TotalPurchasedQuantity = Column(Integer, nullable=False, default=0, server_default=text("0"))
    CreatedAt              = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("PriceCents >= 0",     name="CK_Variant_Price_NonNeg"),
        CheckConstraint("CostPriceCents >= 0", name="CK_Variant_Cost_NonNeg"),
    )

    Price       = money_property("PriceCents")
    CostPrice   = money_property("CostPriceCents")
    AverageCost = money_property("AverageCostCents")

    product          = relationship("Product", back_populates="variants")
    attribute_values = relationship("AttributeValue", secondary=VariantAttributeValue)
    inventories      = relationship("Inventory", back_populates="variant", cascade="all, delete-orphan")

    @property
    def ProductName(self):
        return self.product.Name if self.product else None

    @property
    def TotalStock(self) -> int:
        return sum(int(i.Quantity or 0) for i in self.inventories)
