from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from .common import Money

PriorityLevelLiteral = Literal["vip", "high", "normal", "low"]

class AddressIn(BaseModel):
    AddressID: Optional[int] = None
    Address: str = Field(..., min_length=1, max_length=255)
    IsDefault: bool = False

class AddressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    AddressID: int
    Address: str
    IsDefault: bool

class CustomerCreate(BaseModel):
    Name: str = Field(..., min_length=1, max_length=100)
    Phone: Optional[str] = Field(None, max_length=50)
    IsCompany: bool = False
    TaxID: Optional[str] = Field(None, max_length=50)
    IndustryType: Optional[str] = None
    PaymentType: Optional[str] = None
    ContactAddress: Optional[str] = None
    PriorityLevel: PriorityLevelLiteral = "normal"
    IsPriorityCustomer: bool = False
    Addresses: List[AddressIn] = Field(default_factory=list)

class CustomerUpdate(BaseModel):
    Name: Optional[str] = Field(None, min_length=1, max_length=100)
    Phone: Optional[str] = Field(None, max_length=50)
    IsCompany: Optional[bool] = None
    TaxID: Optional[str] = Field(None, max_length=50)
    IndustryType: Optional[str] = None
    PaymentType: Optional[str] = None
    ContactAddress: Optional[str] = None
    PriorityLevel: Optional[PriorityLevelLiteral] = None
    IsPriorityCustomer: Optional[bool] = None
    Addresses: Optional[List[AddressIn]] = None

class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    CustomerID: int
    Name: str
    Phone: Optional[str] = None
    IsCompany: bool
    TaxID: Optional[str] = None
    IndustryType: Optional[str] = None
    PaymentType: Optional[str] = None
    ContactAddress: Optional[str] = None
    PriorityLevel: PriorityLevelLiteral
    IsPriorityCustomer: bool
    TotalUnpaidAmount: Money
    TotalCompletedAmount: Money
    DefaultAddress: Optional[str] = None
    Addresses: List[AddressRead] = Field(default_factory=list, validation_alias="addresses")
    CreatedAt: Optional[datetime] = None
