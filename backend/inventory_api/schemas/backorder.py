from typing import List, Literal, Optional
from pydantic import BaseModel, Field

class ConvertIn(BaseModel):
    ItemIDs: List[int] = Field(..., min_length=1)
    StoreID: Optional[int] = None  # boşsa siparişin mağazası

class TransferStatusIn(BaseModel):
    OrderItemID: int = Field(..., ge=1)
    Status: Literal["in_transit", "completed"]
    Quantity: Optional[int] = Field(None, gt=0)

class AllocationPreviewIn(BaseModel):
    VariantID: int = Field(..., ge=1)
    Quantity: int = Field(..., gt=0)
    Strategy: Literal["smart_priority", "fifo"] = "smart_priority"
