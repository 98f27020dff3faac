from datetime import datetime
from uuid import UUID
import logging

from fastapi.concurrency import run_in_threadpool

from invgen.core.config import settings
from invgen.core.storage import ObjectStorage, temporary_object
from invgen.models.invoice import Invoice
from invgen.models.user import User
from invgen.repositories.base import DataStore
from invgen.services.branding import BrandTheme, resolve_theme
from invgen.services.email_service import EmailAttachment, EmailService
from invgen.services.invoice_service import InvoiceService
from invgen.services.lifecycle import can_send
from invgen.services.pdf_service import PDFService, invoice_totals
from invgen.utils.exceptions import (
    BadRequestException,
    ConflictException,
    InvoiceSendError,
    MailDeliveryError,
    NotFoundException,
    PDFRenderError,
    StorageError,
)

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def invoice_filename(invoice: Invoice) -> str:
    return f"invoice-{invoice.invoice_number}.pdf"


def temporary_pdf_key(user_id: UUID, invoice_number: str, now: datetime = None) -> str:
    stamp = int((now or datetime.utcnow()).timestamp() * 1000)
    return f"invoices/{user_id}/invoice-{invoice_number}-{stamp}.pdf"


async def render_invoice_pdf(invoice: Invoice, user: User, theme: BrandTheme = None) -> bytes:
    """Render in the thread pool with the owner's brand theme."""
    pdf_service = PDFService(theme=theme or resolve_theme(user.brand_theme))
    return await run_in_threadpool(pdf_service.generate_invoice_pdf, invoice, user)


class InvoiceSendService:
    """Render, stash, mail, then mark SENT. Nothing is persisted unless the mail goes out."""

    def __init__(self, store: DataStore, storage: ObjectStorage, email_service: EmailService):
        self.store = store
        self.storage = storage
        self.email_service = email_service
        self.invoice_service = InvoiceService(store)

    async def send_invoice(self, invoice_id: UUID, user_id: UUID) -> Invoice:
        invoice = await self.invoice_service.get_invoice(invoice_id, user_id)

        if not can_send(invoice.status):
            raise ConflictException(f"Cannot send an invoice with status {invoice.status.value}")
        if not invoice.client.email:
            raise BadRequestException("Client email is required to send an invoice")

        user = await self.store.get_user_by_id(user_id)
        if user is None:
            raise NotFoundException("User not found")
        theme = resolve_theme(user.brand_theme)

        # Step 1: render
        try:
            content = await render_invoice_pdf(invoice, user, theme)
        except PDFRenderError as e:
            logger.error(f"Rendering invoice {invoice.invoice_number} failed: {e.__cause__ or e}")
            raise InvoiceSendError("render") from e

        # Steps 2 and 3: upload, mail; the object is removed on the way out
        key = temporary_pdf_key(user_id, invoice.invoice_number)
        try:
            async with temporary_object(self.storage, key, content, PDF_CONTENT_TYPE):
                rendered = self.email_service.render_invoice_email(
                    invoice_number=invoice.invoice_number,
                    client_name=invoice.client.display_name,
                    amount=invoice_totals(invoice, settings.TAX_RATE)["total"],
                    company_name=user.display_name,
                    due_date=invoice.due_date.strftime("%B %d, %Y") if invoice.due_date else None,
                    theme=theme,
                )
                try:
                    await self.email_service.send_email(
                        to_email=invoice.client.email,
                        subject=rendered.subject,
                        html_content=rendered.html,
                        text_content=rendered.text,
                        attachments=[EmailAttachment(invoice_filename(invoice), content, PDF_CONTENT_TYPE)],
                    )
                except MailDeliveryError as e:
                    raise InvoiceSendError("email") from e
        except StorageError as e:
            logger.error(f"Storing invoice {invoice.invoice_number} failed: {e}")
            raise InvoiceSendError("storage") from e

        invoice = await self.invoice_service.mark_as_sent(invoice, user_id)
        logger.info(f"Invoice {invoice.invoice_number} sent to {invoice.client.email}")
        return invoice
