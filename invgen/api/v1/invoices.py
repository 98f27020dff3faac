from fastapi import APIRouter, Depends, status, Query, Response
from typing import Optional
from uuid import UUID
import math

from invgen.core.storage import ObjectStorage, get_storage
from invgen.models.user import User
from invgen.models.invoice import InvoiceStatus
from invgen.repositories import DataStore
from invgen.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    InvoiceListResponse,
    InvoiceSummary,
    SendInvoiceResponse,
)
from invgen.services.email_service import EmailService, get_email_service
from invgen.services.invoice_service import InvoiceService
from invgen.services.send_service import InvoiceSendService, invoice_filename, render_invoice_pdf
from invgen.utils.dependencies import get_current_user, get_store

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Create a new draft invoice."""
    service = InvoiceService(store)
    invoice = await service.create_invoice(current_user.id, invoice_data)
    return invoice


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """List all invoices with pagination and filters."""
    service = InvoiceService(store)

    skip = (page - 1) * page_size

    invoices, total = await service.list_invoices(
        user_id=current_user.id,
        status=status,
        client_id=client_id,
        search=search,
        skip=skip,
        limit=page_size
    )

    return {
        "invoices": invoices,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size)
    }


@router.get("/summary", response_model=InvoiceSummary)
async def get_invoice_summary(
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Get invoice summary statistics."""
    service = InvoiceService(store)
    summary = await service.get_invoice_summary(current_user.id)
    return summary


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Get a specific invoice."""
    service = InvoiceService(store)
    return await service.get_invoice(invoice_id, current_user.id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: UUID,
    invoice_update: InvoiceUpdate,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Update an invoice: fields, items, or status."""
    service = InvoiceService(store)
    return await service.update_invoice(invoice_id, current_user.id, invoice_update)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Delete an invoice."""
    service = InvoiceService(store)
    await service.delete_invoice(invoice_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/send", response_model=SendInvoiceResponse)
async def send_invoice(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage),
    email_service: EmailService = Depends(get_email_service),
):
    """Email the invoice PDF to the client and mark it as sent."""
    service = InvoiceSendService(store, storage, email_service)
    invoice = await service.send_invoice(invoice_id, current_user.id)
    return SendInvoiceResponse(invoice=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_invoice_as_paid(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Mark invoice as paid."""
    service = InvoiceService(store)
    invoice = await service.mark_as_paid(invoice_id, current_user.id)
    return invoice


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    store: DataStore = Depends(get_store),
):
    """Download invoice as PDF."""
    service = InvoiceService(store)
    invoice = await service.get_invoice(invoice_id, current_user.id)
    content = await render_invoice_pdf(invoice, current_user)

    headers = {
        'Content-Disposition': f'attachment; filename="{invoice_filename(invoice)}"'
    }
    return Response(content=content, media_type="application/pdf", headers=headers)
