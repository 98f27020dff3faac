from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    profile_picture_url: Optional[str] = None
    company_logo_url: Optional[str] = None
    brand_theme: Optional[str] = None

class UserUpdatePassword(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

class UserResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    profile_picture_url: Optional[str] = None
    company_logo_url: Optional[str] = None
    brand_theme: Optional[str] = None
    email_verified: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class SignedUploadRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    folder: str = "avatars"

class SignedUploadResponse(BaseModel):
    url: str
    path: str
    public_url: str

class ThemeResponse(BaseModel):
    id: str
    name: str
    primary: str
    secondary: str
