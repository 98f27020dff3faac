from typing import List, Optional, Sequence
from uuid import UUID
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import logging

from invgen.models.client import Client
from invgen.models.invoice import Invoice, InvoiceStatus, OVERDUE
from invgen.schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceItemCreate
from invgen.core.redis import redis_client
from invgen.repositories.base import DataStore
from invgen.services.lifecycle import LOCKED_STATUSES, can_transition
from invgen.services.numbering import InvoiceNumberAllocator
from invgen.utils.exceptions import (
    BadRequestException,
    ConflictException,
    DuplicateRecordError,
    NotFoundException,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_NUMBER_ATTEMPTS = 3
# Largest value a NUMERIC(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")
SUMMARY_CACHE_SECONDS = 600


def summary_cache_key(user_id: UUID) -> str:
    return f"invoice_summary:{user_id}"


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return (Decimal(quantity) * Decimal(unit_price)).quantize(CENT, rounding=ROUND_HALF_UP)


def build_item_rows(items: Sequence[InvoiceItemCreate]) -> List[dict]:
    """Item rows with their totals computed at write time."""
    return [
        {
            "description": item.description,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "total": line_total(item.quantity, item.unit_price),
        }
        for item in items
    ]


def calculate_amount(rows: Sequence[dict]) -> Decimal:
    return sum((row["total"] for row in rows), Decimal("0.00"))


def priced_amount(rows: Sequence[dict]) -> Decimal:
    """Invoice amount for ``rows``, refused when it or any line total overflows storage."""
    amount = calculate_amount(rows)
    if amount > MAX_AMOUNT or any(row["total"] > MAX_AMOUNT for row in rows):
        raise BadRequestException(f"Invoice and line totals cannot exceed {MAX_AMOUNT}")
    return amount


class InvoiceService:
    def __init__(self, store: DataStore):
        self.store = store
        self.allocator = InvoiceNumberAllocator(store)

    async def _invalidate(self, user_id: UUID):
        await redis_client.delete(summary_cache_key(user_id))

    async def _get_owned_client(self, client_id: UUID, user_id: UUID) -> Client:
        client = await self.store.get_client_by_id(client_id)
        if client is None or client.user_id != user_id:
            raise NotFoundException("Client not found")
        return client

    async def get_invoice(self, invoice_id: UUID, user_id: UUID) -> Invoice:
        """Load an invoice the caller owns through its client.

        A foreign invoice is reported exactly like a missing one.
        """
        invoice = await self.store.get_invoice_by_id(invoice_id)
        if invoice is None or invoice.client is None or invoice.client.user_id != user_id:
            raise NotFoundException("Invoice not found")
        return invoice

    async def list_invoices(
        self,
        user_id: UUID,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[List[Invoice], int]:
        """List invoices with filters, newest first."""
        invoices = await self.store.get_invoices_by_user(
            user_id, status=status, client_id=client_id, search=search
        )
        return invoices[skip:skip + limit], len(invoices)

    async def create_invoice(self, user_id: UUID, invoice_data: InvoiceCreate) -> Invoice:
        """Create a draft invoice with a freshly allocated number."""
        if not invoice_data.client_id or not invoice_data.items:
            raise BadRequestException("Client and at least one item are required")

        await self._get_owned_client(invoice_data.client_id, user_id)

        rows = build_item_rows(invoice_data.items)
        fields = {
            "user_id": user_id,
            "client_id": invoice_data.client_id,
            "status": InvoiceStatus.DRAFT,
            "amount": priced_amount(rows),
            "due_date": invoice_data.due_date,
            "notes": invoice_data.notes,
        }

        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            try:
                fields["invoice_number"] = await self.allocator.next_invoice_number(user_id)
                invoice = await self.store.create_invoice(fields, rows)
            except DuplicateRecordError:
                await self.store.rollback()
                logger.warning(
                    f"Invoice number collision for user {user_id} (attempt {attempt}/{MAX_NUMBER_ATTEMPTS})"
                )
                continue
            except Exception:
                await self.store.rollback()
                raise

            await self._invalidate(user_id)
            logger.info(f"Created invoice {invoice.invoice_number} for user {user_id}")
            return invoice

        raise ConflictException("Could not allocate an invoice number, please retry")

    async def update_invoice(
        self,
        invoice_id: UUID,
        user_id: UUID,
        invoice_update: InvoiceUpdate,
    ) -> Invoice:
        """Apply a partial update; replacing items always recomputes the amount."""
        invoice = await self.get_invoice(invoice_id, user_id)

        update_data = invoice_update.model_dump(exclude_unset=True, exclude={"items", "status"})
        replaces_items = invoice_update.items is not None

        if (update_data or replaces_items) and invoice.status in LOCKED_STATUSES:
            raise ConflictException(
                f"Cannot edit an invoice with status {invoice.status.value}"
            )

        if "client_id" in update_data:
            if update_data["client_id"] is None:
                raise BadRequestException("An invoice must belong to a client")
            await self._get_owned_client(update_data["client_id"], user_id)

        rows = None
        if replaces_items:
            if not invoice_update.items:
                raise BadRequestException("At least one item is required")
            rows = build_item_rows(invoice_update.items)
            update_data["amount"] = priced_amount(rows)

        if invoice_update.status is not None:
            update_data.update(self._status_fields(invoice, invoice_update.status))

        if not update_data and rows is None:
            return invoice

        invoice = await self.store.update_invoice(invoice.id, update_data, rows)
        await self._invalidate(user_id)
        return invoice

    def _status_fields(self, invoice: Invoice, new_status: InvoiceStatus) -> dict:
        if not can_transition(invoice.status, new_status):
            raise ConflictException(
                f"Cannot change status from {invoice.status.value} to {new_status.value}"
            )
        if new_status == invoice.status:
            return {}
        fields = {"status": new_status}
        now = datetime.utcnow()
        if new_status == InvoiceStatus.SENT:
            fields["sent_at"] = now
        elif new_status == InvoiceStatus.PAID:
            fields["paid_at"] = now
        return fields

    async def update_status(
        self,
        invoice_id: UUID,
        user_id: UUID,
        new_status: InvoiceStatus,
    ) -> Invoice:
        invoice = await self.get_invoice(invoice_id, user_id)
        fields = self._status_fields(invoice, new_status)
        if not fields:
            return invoice
        invoice = await self.store.update_invoice(invoice.id, fields)
        await self._invalidate(user_id)
        logger.info(f"Invoice {invoice.invoice_number} moved to {new_status.value}")
        return invoice

    async def mark_as_paid(self, invoice_id: UUID, user_id: UUID) -> Invoice:
        """Mark invoice as paid."""
        return await self.update_status(invoice_id, user_id, InvoiceStatus.PAID)

    async def mark_as_sent(self, invoice: Invoice, user_id: UUID) -> Invoice:
        """Record a delivered invoice. Re-sending refreshes ``sent_at``."""
        invoice = await self.store.update_invoice(
            invoice.id,
            {"status": InvoiceStatus.SENT, "sent_at": datetime.utcnow()},
        )
        await self._invalidate(user_id)
        return invoice

    async def delete_invoice(self, invoice_id: UUID, user_id: UUID) -> None:
        """Delete an invoice together with its items."""
        invoice = await self.get_invoice(invoice_id, user_id)
        await self.store.delete_invoice(invoice.id)
        await self._invalidate(user_id)
        logger.info(f"Deleted invoice {invoice.invoice_number} for user {user_id}")

    async def get_invoice_summary(self, user_id: UUID) -> dict:
        """Get invoice summary statistics."""
        cache_key = summary_cache_key(user_id)
        cached = await redis_client.get_json(cache_key)
        if cached:
            return cached

        invoices = await self.store.get_invoices_by_user(user_id)
        counts = {status: 0 for status in InvoiceStatus}
        total_revenue = Decimal("0.00")
        outstanding = Decimal("0.00")
        overdue = 0
        for invoice in invoices:
            counts[invoice.status] += 1
            if invoice.status == InvoiceStatus.PAID:
                total_revenue += invoice.amount
            elif invoice.status == InvoiceStatus.SENT:
                outstanding += invoice.amount
            if invoice.display_status == OVERDUE:
                overdue += 1

        summary = {
            "total_invoices": len(invoices),
            "total_revenue": str(total_revenue),
            "outstanding_amount": str(outstanding),
            "draft_invoices": counts[InvoiceStatus.DRAFT],
            "sent_invoices": counts[InvoiceStatus.SENT],
            "paid_invoices": counts[InvoiceStatus.PAID],
            "cancelled_invoices": counts[InvoiceStatus.CANCELLED],
            "overdue_invoices": overdue,
        }

        await redis_client.set_json(cache_key, summary, expire=SUMMARY_CACHE_SECONDS)
        return summary
