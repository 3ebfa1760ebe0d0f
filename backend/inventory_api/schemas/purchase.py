from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import Money, parse_money

PurchaseStatusLiteral = Literal[
    "pending", "confirmed", "in_transit", "received", "partially_received", "completed", "cancelled"
]

class PurchaseItemIn(BaseModel):
    PurchaseItemID: Optional[int] = None
    VariantID: int = Field(..., ge=1)
    Quantity: int = Field(..., gt=0)
    UnitPrice: Money
    CostPrice: Optional[Money] = None  # boşsa UnitPrice

    @field_validator("UnitPrice", "CostPrice", mode="before")
    @classmethod
    def _money(cls, v):
        return None if v is None else parse_money(v)

class PurchaseOrderItemIn(BaseModel):
    OrderItemID: int = Field(..., ge=1)
    PurchaseQuantity: int = Field(..., gt=0)
    CostPrice: Optional[Money] = None  # boşsa varyant maliyeti

    @field_validator("CostPrice", mode="before")
    @classmethod
    def _money(cls, v):
        return None if v is None else parse_money(v)

class PurchaseCreate(BaseModel):
    StoreID: int = Field(..., ge=1)
    PurchasedAt: Optional[datetime] = None
    ShippingCost: Money = Decimal("0")
    Status: Literal["pending", "confirmed"] = "pending"
    Notes: Optional[str] = None
    Items: List[PurchaseItemIn] = Field(default_factory=list)
    OrderItemIDs: List[int] = Field(default_factory=list)  # bağlanacak bekleyen sipariş kalemleri
    OrderItems: List[PurchaseOrderItemIn] = Field(default_factory=list)  # kalem başına bir satır açılır

    @field_validator("ShippingCost", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v)

    @model_validator(mode="after")
    def _has_lines(self):
        if not self.Items and not self.OrderItems:
            raise ValueError("Items ya da OrderItems gerekli")
        return self

class PurchaseUpdate(BaseModel):
    StoreID: Optional[int] = None
    PurchasedAt: Optional[datetime] = None
    ShippingCost: Optional[Money] = None
    Notes: Optional[str] = None
    Items: Optional[List[PurchaseItemIn]] = Field(None, min_length=1)

    @field_validator("ShippingCost", mode="before")
    @classmethod
    def _money(cls, v):
        return None if v is None else parse_money(v)

class PurchaseStatusIn(BaseModel):
    Status: PurchaseStatusLiteral

class ReceiptItemIn(BaseModel):
    PurchaseItemID: int = Field(..., ge=1)
    ReceivedQuantity: int = Field(..., ge=0)  # kümülatif

class PartialReceiptIn(BaseModel):
    Items: List[ReceiptItemIn] = Field(..., min_length=1)
    Notes: Optional[str] = None

class PurchaseNotesIn(BaseModel):
    Notes: Optional[str] = None

class ShippingCostIn(BaseModel):
    ShippingCost: Money

    @field_validator("ShippingCost", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v)

class BindOrdersIn(BaseModel):
    OrderItemIDs: List[int] = Field(..., min_length=1)

class PurchaseItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    PurchaseItemID: int
    VariantID: int
    Sku: Optional[str] = None
    ProductName: Optional[str] = None
    Quantity: int
    UnitPrice: Money
    CostPrice: Money
    AllocatedShippingCost: Money
    TotalCostPrice: Money
    ReceivedQuantity: int
    PendingQuantity: int
    ReceiptStatus: Literal["pending", "partial", "completed"]

class PurchaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    PurchaseID: int
    OrderNumber: str
    StoreID: int
    StoreName: Optional[str] = None
    UserID: Optional[int] = None
    PurchasedAt: datetime
    ShippingCost: Money
    TotalAmount: Money
    Status: PurchaseStatusLiteral
    Notes: Optional[str] = None
    ReceivedAt: Optional[datetime] = None
    CreatedAt: datetime
    Items: List[PurchaseItemRead] = Field(default_factory=list, validation_alias="items")
