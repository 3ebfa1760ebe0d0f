from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import Money, parse_money

ShippingStatusLiteral = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatusLiteral = Literal["pending", "unpaid", "partial", "paid", "refunded"]
PriorityLiteral = Literal["urgent", "high", "normal", "low"]

# ---- Girdi ----
class TransferLegIn(BaseModel):
    FromStoreID: int = Field(..., ge=1)
    Quantity: int = Field(..., gt=0)

class OrderItemIn(BaseModel):
    ItemID: Optional[int] = None  # güncellemede mevcut kalem
    VariantID: Optional[int] = None  # None = özel (katalog dışı) ürün
    ProductName: Optional[str] = Field(None, max_length=200)
    Sku: Optional[str] = Field(None, max_length=100)
    Price: Money
    Cost: Money = Decimal("0")
    Quantity: int = Field(..., gt=0)
    DiscountAmount: Money = Decimal("0")
    TaxRate: Decimal = Field(Decimal("0"), ge=0, le=100)
    IsStockedSale: bool = True
    IsBackorder: bool = False
    Status: Optional[str] = None
    StockDecision: Optional[Literal["transfer", "purchase", "mixed"]] = None
    Transfers: Optional[List[TransferLegIn]] = None  # mixed: elle seçilen kaynaklar
    PurchaseQuantity: Optional[int] = Field(None, ge=0)
    PriorityDeadline: Optional[datetime] = None
    CustomSpecifications: Optional[Dict[str, Any]] = None

    @field_validator("Price", "Cost", "DiscountAmount", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v)

    @model_validator(mode="after")
    def _custom_item(self):
        if self.VariantID is None:
            if not self.ProductName:
                raise ValueError("Özel ürün için ProductName gerekli")
            # Özel ürün stoktan düşülmez
            self.IsStockedSale = False
        return self

class OrderCreate(BaseModel):
    CustomerID: int = Field(..., ge=1)
    StoreID: Optional[int] = None
    ShippingStatus: ShippingStatusLiteral = "pending"
    PaymentStatus: PaymentStatusLiteral = "pending"
    ShippingFee: Money = Decimal("0")
    Tax: Money = Decimal("0")
    DiscountAmount: Money = Decimal("0")
    PaymentMethod: Optional[str] = None
    OrderSource: Optional[str] = None
    ShippingAddress: Optional[str] = None
    Notes: Optional[str] = None
    FulfillmentPriority: PriorityLiteral = "normal"
    ExpectedDeliveryDate: Optional[date] = None
    ForceCreateDespiteStock: bool = False
    Items: List[OrderItemIn] = Field(..., min_length=1)

    @field_validator("ShippingFee", "Tax", "DiscountAmount", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v)

class OrderUpdate(BaseModel):
    CustomerID: Optional[int] = None
    StoreID: Optional[int] = None
    ShippingStatus: Optional[ShippingStatusLiteral] = None
    PaymentStatus: Optional[PaymentStatusLiteral] = None
    ShippingFee: Optional[Money] = None
    Tax: Optional[Money] = None
    DiscountAmount: Optional[Money] = None
    PaymentMethod: Optional[str] = None
    OrderSource: Optional[str] = None
    ShippingAddress: Optional[str] = None
    Notes: Optional[str] = None
    FulfillmentPriority: Optional[PriorityLiteral] = None
    ExpectedDeliveryDate: Optional[date] = None
    Items: Optional[List[OrderItemIn]] = Field(None, min_length=1)

    @field_validator("ShippingFee", "Tax", "DiscountAmount", mode="before")
    @classmethod
    def _money(cls, v):
        return None if v is None else parse_money(v)

class StockCheckItem(BaseModel):
    VariantID: int = Field(..., ge=1)
    Quantity: int = Field(..., gt=0)

class StockCheckIn(BaseModel):
    StoreID: Optional[int] = None
    Items: List[StockCheckItem] = Field(..., min_length=1)

class PaymentIn(BaseModel):
    Amount: Money
    PaymentMethod: str = Field(..., min_length=1, max_length=50)
    PaymentDate: Optional[datetime] = None
    Notes: Optional[str] = Field(None, max_length=500)

    @field_validator("Amount", mode="before")
    @classmethod
    def _money(cls, v):
        return parse_money(v, positive=True)

class ShipmentIn(BaseModel):
    TrackingNumber: str = Field(..., min_length=1, max_length=100)
    Carrier: Optional[str] = Field(None, max_length=100)
    ShippedAt: Optional[datetime] = None
    EstimatedDeliveryDate: Optional[date] = None
    Notes: Optional[str] = None

class OrderCancelIn(BaseModel):
    Reason: Optional[str] = Field(None, max_length=255)

class BatchStatusIn(BaseModel):
    IDs: List[int] = Field(..., min_length=1)
    StatusType: Literal["payment", "shipping"]
    StatusValue: str

    @model_validator(mode="after")
    def _value_fits_type(self):
        allowed = (
            ("pending", "unpaid", "partial", "paid", "refunded")
            if self.StatusType == "payment"
            else ("pending", "processing", "shipped", "delivered", "cancelled")
        )
        if self.StatusValue not in allowed:
            raise ValueError(f"Geçersiz durum: {self.StatusValue}")
        return self

class ItemStatusIn(BaseModel):
    Status: Literal["pending", "confirmed", "processing", "completed", "cancelled"]
    Notes: Optional[str] = None

# ---- Çıktı ----
class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ItemID: int
    OrderID: int
    VariantID: Optional[int] = None
    PurchaseItemID: Optional[int] = None
    ProductName: str
    Sku: str
    Price: Money
    Cost: Money
    DiscountAmount: Money
    TaxRate: Decimal
    Quantity: int
    IsStockedSale: bool
    IsBackorder: bool
    Status: str
    FulfilledQuantity: int
    RemainingQuantity: int
    IsFulfilled: bool
    FulfilledAt: Optional[datetime] = None
    PriorityDeadline: Optional[datetime] = None
    CustomSpecifications: Optional[Dict[str, Any]] = None

class HistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    HistoryID: int
    UserID: Optional[int] = None
    StatusType: str
    FromStatus: Optional[str] = None
    ToStatus: str
    Notes: Optional[str] = None
    CreatedAt: datetime

class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    PaymentID: int
    Amount: Money
    PaymentMethod: str
    PaymentDate: datetime
    Notes: Optional[str] = None

class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    OrderID: int
    OrderNumber: str
    CustomerID: int
    CustomerName: Optional[str] = None
    StoreID: Optional[int] = None
    CreatorUserID: Optional[int] = None
    ShippingStatus: ShippingStatusLiteral
    PaymentStatus: PaymentStatusLiteral
    Subtotal: Money
    ShippingFee: Money
    Tax: Money
    DiscountAmount: Money
    GrandTotal: Money
    PaidAmount: Money
    PaymentMethod: Optional[str] = None
    OrderSource: Optional[str] = None
    ShippingAddress: Optional[str] = None
    Notes: Optional[str] = None
    FulfillmentPriority: str
    ExpectedDeliveryDate: Optional[date] = None
    TrackingNumber: Optional[str] = None
    Carrier: Optional[str] = None
    EstimatedDeliveryDate: Optional[date] = None
    PaidAt: Optional[datetime] = None
    ShippedAt: Optional[datetime] = None
    CancelledAt: Optional[datetime] = None
    CreatedAt: datetime

class OrderDetailRead(OrderRead):
    Items: List[OrderItemRead] = Field(default_factory=list, validation_alias="items")
    Histories: List[HistoryRead] = Field(default_factory=list, validation_alias="histories")
    Payments: List[PaymentRead] = Field(default_factory=list, validation_alias="payments")
