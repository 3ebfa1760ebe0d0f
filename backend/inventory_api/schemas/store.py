from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class StoreCreate(BaseModel):
    Name: str = Field(..., min_length=1, max_length=100)
    Address: Optional[str] = None
    Phone: Optional[str] = None
    IsActive: bool = True

class StoreUpdate(BaseModel):
    Name: Optional[str] = Field(None, min_length=1, max_length=100)
    Address: Optional[str] = None
    Phone: Optional[str] = None
    IsActive: Optional[bool] = None

class StoreRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    StoreID: int
    Name: str
    Address: Optional[str] = None
    Phone: Optional[str] = None
    IsActive: bool
    CreatedAt: Optional[datetime] = None
