"""Tests for the send workflow."""
from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from invgen.core.config import settings
from invgen.core.storage import temporary_object
from invgen.models import Invoice, InvoiceStatus
from invgen.services.pdf_service import PDFService
from invgen.services.send_service import temporary_pdf_key
from invgen.utils.exceptions import StorageError

from tests.conftest import InMemoryStorage, make_client, make_invoice


async def stored_status(session_factory, invoice_id) -> InvoiceStatus:
    async with session_factory() as session:
        return (await session.execute(select(Invoice.status).where(Invoice.id == invoice_id))).scalar_one()


@pytest.mark.asyncio
async def test_send_mails_pdf_and_marks_sent(authed_client: AsyncClient, db, acme, storage, mailer):
    invoice = await make_invoice(db, acme, "INV-00001")

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["invoice"]["status"] == "SENT"
    assert data["invoice"]["sent_at"] is not None

    assert len(mailer.sent) == 1
    email = mailer.sent[0]
    assert email.to_email == "billing@acme.com"
    assert "INV-00001" in email.subject
    assert "Road Runner Studio" in email.subject
    assert email.attachments[0].filename == "invoice-INV-00001.pdf"
    assert email.attachments[0].content.startswith(b"%PDF")

    # The temporary object was uploaded and cleaned up
    assert len(storage.uploaded) == 1
    assert storage.uploaded[0].startswith(f"invoices/{acme.user_id}/invoice-INV-00001-")
    assert storage.removed == storage.uploaded
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_mail_failure_leaves_status_unchanged(authed_client: AsyncClient, db, acme, storage, mailer, session_factory):
    invoice = await make_invoice(db, acme, "INV-00001")
    mailer.fail = True

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to send invoice", "step": "email"}
    assert await stored_status(session_factory, invoice.id) == InvoiceStatus.DRAFT
    assert storage.objects == {}
    assert len(storage.removed) == 1


@pytest.mark.asyncio
async def test_storage_failure_reports_step(authed_client: AsyncClient, db, acme, storage, mailer, session_factory):
    invoice = await make_invoice(db, acme, "INV-00001")
    storage.fail_upload = True

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 500
    assert response.json()["step"] == "storage"
    assert mailer.sent == []
    assert await stored_status(session_factory, invoice.id) == InvoiceStatus.DRAFT


@pytest.mark.asyncio
async def test_sent_invoice_can_be_resent(authed_client: AsyncClient, db, acme, mailer):
    invoice = await make_invoice(db, acme, "INV-00001", status=InvoiceStatus.SENT)

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 200
    assert response.json()["invoice"]["status"] == "SENT"
    assert len(mailer.sent) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
async def test_locked_invoice_cannot_be_sent(authed_client: AsyncClient, db, acme, mailer, status):
    invoice = await make_invoice(db, acme, "INV-00001", status=status)

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 409
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_client_without_email_cannot_be_sent(authed_client: AsyncClient, db, user, mailer):
    no_email = await make_client(db, user, company_name="Ghost Ltd", email="")
    invoice = await make_invoice(db, no_email, "INV-00001")

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 400
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_foreign_invoice_cannot_be_sent(authed_client: AsyncClient, db, other_user, mailer):
    theirs = await make_client(db, other_user, company_name="Their Client")
    invoice = await make_invoice(db, theirs, "INV-00001")

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 404
    assert mailer.sent == []


def test_temporary_key_layout():
    key = temporary_pdf_key("u-1", "INV-00009", now=datetime(2024, 1, 2, 3, 4, 5))
    assert key.startswith("invoices/u-1/invoice-INV-00009-")
    assert key.endswith(".pdf")


class FailingRemoveStorage(InMemoryStorage):
    async def remove(self, path: str) -> None:
        raise StorageError("gone away")


@pytest.mark.asyncio
async def test_temporary_object_swallows_removal_failure():
    storage = FailingRemoveStorage()

    async with temporary_object(storage, "tmp/a.pdf", b"%PDF", "application/pdf") as url:
        assert url == "https://storage.test/tmp/a.pdf"

    assert storage.uploaded == ["tmp/a.pdf"]


@pytest.mark.asyncio
async def test_temporary_object_removes_on_error():
    storage = InMemoryStorage()

    with pytest.raises(RuntimeError):
        async with temporary_object(storage, "tmp/b.pdf", b"%PDF", "application/pdf"):
            raise RuntimeError("boom")

    assert storage.removed == ["tmp/b.pdf"]


@pytest.mark.asyncio
async def test_email_amount_includes_tax(authed_client: AsyncClient, db, acme, mailer, monkeypatch):
    monkeypatch.setattr(settings, "TAX_RATE", Decimal("10"))
    invoice = await make_invoice(db, acme, "INV-00001", amount=Decimal("200.00"))

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 200
    email = mailer.sent[0]
    assert "Amount Due: $220.00" in email.text_content
    assert "220.00" in email.html_content
    assert "200.00" not in email.text_content


@pytest.mark.asyncio
async def test_email_does_not_link_the_temporary_object(authed_client: AsyncClient, db, acme, storage, mailer):
    invoice = await make_invoice(db, acme, "INV-00001")

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 200
    email = mailer.sent[0]
    assert "storage.test" not in email.text_content
    assert "storage.test" not in email.html_content
    assert storage.objects == {}
    assert email.attachments[0].content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_render_failure_reports_step(authed_client: AsyncClient, db, acme, storage, mailer, session_factory, monkeypatch):
    def broken_layout(self, invoice, user):
        raise ValueError("bad layout")

    monkeypatch.setattr(PDFService, "_build", broken_layout)
    invoice = await make_invoice(db, acme, "INV-00001")

    response = await authed_client.post(f"/api/v1/invoices/{invoice.id}/send")

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to send invoice", "step": "render"}
    assert await stored_status(session_factory, invoice.id) == InvoiceStatus.DRAFT
    assert storage.uploaded == []
    assert mailer.sent == []
