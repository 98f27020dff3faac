from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

class ClientBase(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr = Field(..., description="Address invoices are sent to")
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None

class ClientCreate(ClientBase):
    pass

class ClientUpdate(ClientBase):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None

class ClientResponse(ClientBase):
    id: UUID
    user_id: UUID
    # Stored addresses are not re-validated on the way out
    email: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
