from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, EmailStr, Field, ConfigDict

RoleLiteral = Literal["admin", "staff", "viewer", "installer"]

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: str = Field(min_length=6, max_length=128)
    role: Optional[RoleLiteral] = "viewer"
    store_ids: List[int] = Field(default_factory=list)

class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6, max_length=128)
    role: Optional[RoleLiteral] = None
    is_active: Optional[bool] = None

class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    UserID: int
    Username: str
    FullName: Optional[str]
    Email: Optional[str]
    Role: RoleLiteral
    IsActive: bool
    StoreIDs: List[int] = Field(default_factory=list)
    CreatedAt: Optional[datetime] = None

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=128)

class UserStoresIn(BaseModel):
    store_ids: List[int] = Field(default_factory=list)
