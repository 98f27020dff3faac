from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

from invgen.models.invoice import InvoiceStatus

class InvoiceItemBase(BaseModel):
    description: str = Field(..., min_length=1, max_length=512)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

class InvoiceItemCreate(InvoiceItemBase):
    pass

class InvoiceItemResponse(InvoiceItemBase):
    id: UUID
    total: Decimal

    class Config:
        from_attributes = True

class InvoiceCreate(BaseModel):
    # Presence is checked by the service so both surface as a 400
    client_id: Optional[UUID] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[InvoiceItemCreate] = []

class InvoiceUpdate(BaseModel):
    client_id: Optional[UUID] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    items: Optional[List[InvoiceItemCreate]] = None

class InvoiceClient(BaseModel):
    id: UUID
    company_name: str
    contact_name: Optional[str] = None
    email: str

    class Config:
        from_attributes = True

class InvoiceResponse(BaseModel):
    id: UUID
    client_id: UUID
    invoice_number: str
    status: InvoiceStatus
    display_status: str
    amount: Decimal
    due_date: Optional[date] = None
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    client: Optional[InvoiceClient] = None
    items: List[InvoiceItemResponse] = []

    class Config:
        from_attributes = True


class InvoiceListItem(BaseModel):
    id: UUID
    client_id: UUID
    invoice_number: str
    status: InvoiceStatus
    display_status: str
    amount: Decimal
    due_date: Optional[date] = None
    created_at: datetime
    client: Optional[InvoiceClient] = None

    class Config:
        from_attributes = True


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceListItem]
    total: int
    page: int
    page_size: int
    total_pages: int


class InvoiceSummary(BaseModel):
    total_invoices: int
    total_revenue: Decimal
    outstanding_amount: Decimal
    draft_invoices: int
    sent_invoices: int
    paid_invoices: int
    cancelled_invoices: int
    overdue_invoices: int


class SendInvoiceResponse(BaseModel):
    success: bool = True
    message: str = "Invoice sent successfully"
    invoice: InvoiceResponse
