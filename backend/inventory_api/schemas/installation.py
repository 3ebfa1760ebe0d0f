from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

InstallationStatusLiteral = Literal["pending", "scheduled", "in_progress", "completed", "cancelled"]

class InstallationItemIn(BaseModel):
    InstallationItemID: Optional[int] = None
    OrderItemID: Optional[int] = None
    VariantID: Optional[int] = None
    ProductName: str = Field(..., min_length=1, max_length=200)
    Sku: Optional[str] = Field(None, max_length=100)
    Quantity: int = Field(1, gt=0)
    Specifications: Optional[Dict[str, Any]] = None
    Notes: Optional[str] = Field(None, max_length=500)

class InstallationCreate(BaseModel):
    OrderID: Optional[int] = None
    InstallerUserID: Optional[int] = None
    CustomerName: str = Field(..., min_length=1, max_length=100)
    CustomerPhone: Optional[str] = Field(None, max_length=50)
    InstallationAddress: str = Field(..., min_length=1, max_length=255)
    ScheduledDate: Optional[date] = None
    Notes: Optional[str] = None
    Items: List[InstallationItemIn] = Field(default_factory=list)

class InstallationFromOrderIn(BaseModel):
    OrderID: int = Field(..., ge=1)
    OrderItemIDs: Optional[List[int]] = None  # None = tüm kalemler
    InstallerUserID: Optional[int] = None
    InstallationAddress: Optional[str] = Field(None, max_length=255)
    ScheduledDate: Optional[date] = None
    Notes: Optional[str] = None

class InstallationUpdate(BaseModel):
    InstallerUserID: Optional[int] = None
    CustomerName: Optional[str] = Field(None, min_length=1, max_length=100)
    CustomerPhone: Optional[str] = Field(None, max_length=50)
    InstallationAddress: Optional[str] = Field(None, min_length=1, max_length=255)
    ScheduledDate: Optional[date] = None
    Notes: Optional[str] = None
    Items: Optional[List[InstallationItemIn]] = None

class AssignInstallerIn(BaseModel):
    InstallerUserID: int = Field(..., ge=1)
    ScheduledDate: Optional[date] = None

class InstallationStatusIn(BaseModel):
    Status: Literal["pending", "scheduled", "in_progress", "completed"]

class InstallationCancelIn(BaseModel):
    Reason: str = Field(..., min_length=1, max_length=255)

class InstallationItemStatusIn(BaseModel):
    Status: Literal["pending", "completed"]

class InstallationItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    InstallationItemID: int
    OrderItemID: Optional[int] = None
    VariantID: Optional[int] = None
    ProductName: str
    Sku: Optional[str] = None
    Quantity: int
    Specifications: Optional[Dict[str, Any]] = None
    Status: str
    Notes: Optional[str] = None

class InstallationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    InstallationID: int
    InstallationNumber: str
    OrderID: Optional[int] = None
    OrderNumber: Optional[str] = None
    InstallerUserID: Optional[int] = None
    InstallerName: Optional[str] = None
    CreatedBy: Optional[int] = None
    CustomerName: str
    CustomerPhone: Optional[str] = None
    InstallationAddress: str
    Status: InstallationStatusLiteral
    ScheduledDate: Optional[date] = None
    ActualStartTime: Optional[datetime] = None
    ActualEndTime: Optional[datetime] = None
    Notes: Optional[str] = None
    CreatedAt: datetime
    Items: List[InstallationItemRead] = Field(default_factory=list, validation_alias="items")
