from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

TxnTypeLiteral = Literal[
    "addition", "reduction", "adjustment", "transfer_in", "transfer_out",
    "transfer_cancel", "deduct", "return", "purchase",
]
TransferStatusLiteral = Literal["pending", "in_transit", "completed", "cancelled"]

# ---- Stok ----
class InventoryAdjustIn(BaseModel):
    VariantID: int = Field(..., ge=1)
    StoreID: int = Field(..., ge=1)
    Action: Literal["add", "reduce", "set"]
    Quantity: int = Field(..., ge=0)
    Notes: Optional[str] = Field(None, max_length=500)
    Metadata: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _positive_for_moves(self):
        if self.Action in ("add", "reduce") and self.Quantity <= 0:
            raise ValueError("add/reduce için Quantity > 0 olmalı")
        return self

class InventoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    InventoryID: int
    VariantID: int
    StoreID: int
    StoreName: Optional[str] = None
    Sku: Optional[str] = None
    ProductName: Optional[str] = None
    Quantity: int
    LowStockThreshold: int
    IsLowStock: bool
    IsOutOfStock: bool
    UpdatedAt: Optional[datetime] = None

class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    TxnID: int
    InventoryID: int
    UserID: Optional[int] = None
    TxnType: TxnTypeLiteral
    Quantity: int
    BeforeQuantity: int
    AfterQuantity: int
    Notes: Optional[str] = None
    Metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="Meta")
    CreatedAt: datetime

class BatchCheckIn(BaseModel):
    VariantIDs: List[int] = Field(..., min_length=1)
    StoreID: Optional[int] = None

class ThresholdUpdateItem(BaseModel):
    InventoryID: Optional[int] = None
    VariantID: Optional[int] = None
    StoreID: Optional[int] = None
    LowStockThreshold: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _target(self):
        if self.InventoryID is None and self.VariantID is None:
            raise ValueError("InventoryID ya da VariantID gerekli")
        return self

class ThresholdUpdateIn(BaseModel):
    Items: List[ThresholdUpdateItem] = Field(..., min_length=1)

# ---- Transfer ----
class TransferItemIn(BaseModel):
    FromStoreID: int = Field(..., ge=1)
    ToStoreID: int = Field(..., ge=1)
    VariantID: int = Field(..., ge=1)
    Quantity: int = Field(..., gt=0)
    Notes: Optional[str] = None

    @model_validator(mode="after")
    def _different_stores(self):
        if self.FromStoreID == self.ToStoreID:
            raise ValueError("Kaynak ve hedef mağaza farklı olmalı")
        return self

class TransferCreate(TransferItemIn):
    Status: Literal["pending", "in_transit", "completed"] = "completed"
    OrderID: Optional[int] = None

class TransferBatchIn(BaseModel):
    OrderID: Optional[int] = None
    Status: Literal["pending", "in_transit", "completed"] = "pending"
    Transfers: List[TransferItemIn] = Field(..., min_length=1)

class TransferStatusIn(BaseModel):
    Status: Literal["in_transit", "completed"]
    Notes: Optional[str] = None

class TransferCancelIn(BaseModel):
    Reason: str = Field(..., min_length=1, max_length=255)

class TransferRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    TransferID: int
    FromStoreID: int
    ToStoreID: int
    VariantID: int
    OrderID: Optional[int] = None
    UserID: Optional[int] = None
    Quantity: int
    Status: TransferStatusLiteral
    Notes: Optional[str] = None
    CreatedAt: datetime
    UpdatedAt: Optional[datetime] = None
