from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .common import Money

class RefundItemIn(BaseModel):
    OrderItemID: int = Field(..., ge=1)
    Quantity: int = Field(..., gt=0)

class RefundCreate(BaseModel):
    Reason: str = Field(..., min_length=1, max_length=255)
    Notes: Optional[str] = None
    ShouldRestock: bool = False
    Items: List[RefundItemIn] = Field(..., min_length=1)

class RefundItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    RefundItemID: int
    OrderItemID: int
    ProductName: Optional[str] = None
    Sku: Optional[str] = None
    Quantity: int
    RefundSubtotal: Money
    Restocked: bool

class RefundRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    RefundID: int
    OrderID: int
    UserID: Optional[int] = None
    TotalRefundAmount: Money
    Reason: str
    Notes: Optional[str] = None
    ShouldRestock: bool
    CreatedAt: datetime
    Items: List[RefundItemRead] = Field(default_factory=list, validation_alias="items")
