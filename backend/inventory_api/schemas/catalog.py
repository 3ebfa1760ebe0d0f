from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import Money, parse_money

# ---- Kategori ----
class CategoryCreate(BaseModel):
    Name: str = Field(..., min_length=1, max_length=100)
    Description: Optional[str] = None
    ParentID: Optional[int] = None
    SortOrder: int = 0

class CategoryUpdate(BaseModel):
    Name: Optional[str] = Field(None, min_length=1, max_length=100)
    Description: Optional[str] = None
    ParentID: Optional[int] = None
    SortOrder: Optional[int] = None

class CategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    CategoryID: int
    Name: str
    Description: Optional[str] = None
    ParentID: Optional[int] = None
    SortOrder: int

class CategoryReorderItem(BaseModel):
    CategoryID: int
    ParentID: Optional[int] = None
    SortOrder: int = Field(..., ge=0)

class CategoryReorderIn(BaseModel):
    Items: List[CategoryReorderItem] = Field(..., min_length=1)

# ---- Özellik ----
class AttributeCreate(BaseModel):
    Name: str = Field(..., min_length=1, max_length=100)

class AttributeValueCreate(BaseModel):
    Value: str = Field(..., min_length=1, max_length=100)

class AttributeValueRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ValueID: int
    AttributeID: int
    Value: str

class AttributeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    AttributeID: int
    Name: str
    Values: List[AttributeValueRead] = Field(default_factory=list, validation_alias="values")

# ---- Ürün / varyant ----
class VariantIn(BaseModel):
    VariantID: Optional[int] = None  # güncellemede mevcut varyant
    Sku: str = Field(..., min_length=1, max_length=100)
    Price: Money
    CostPrice: Money = 0
    AttributeValueIDs: List[int] = Field(default_factory=list)

    @field_validator("Price", "CostPrice", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v)

class ProductCreate(BaseModel):
    Name: str = Field(..., min_length=1, max_length=200)
    Description: Optional[str] = None
    CategoryID: Optional[int] = None
    AttributeIDs: List[int] = Field(default_factory=list)
    Variants: List[VariantIn] = Field(..., min_length=1)
    CreateInventory: bool = True

class ProductUpdate(BaseModel):
    Name: Optional[str] = Field(None, min_length=1, max_length=200)
    Description: Optional[str] = None
    CategoryID: Optional[int] = None
    AttributeIDs: Optional[List[int]] = None
    Variants: Optional[List[VariantIn]] = None

class VariantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    VariantID: int
    ProductID: int
    ProductName: Optional[str] = None
    Sku: str
    Price: Money
    CostPrice: Money
    AverageCost: Money
    TotalPurchasedQuantity: int
    TotalStock: int = 0
    AttributeValues: List[AttributeValueRead] = Field(default_factory=list, validation_alias="attribute_values")

class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ProductID: int
    Name: str
    Description: Optional[str] = None
    CategoryID: Optional[int] = None
    CreatedAt: Optional[datetime] = None
    Variants: List[VariantRead] = Field(default_factory=list, validation_alias="variants")
