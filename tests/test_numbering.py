"""Tests for invoice number allocation."""
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from invgen.models import Invoice
from invgen.repositories import SQLDataStore
from invgen.schemas.invoice import InvoiceCreate, InvoiceItemCreate
from invgen.services.invoice_service import MAX_NUMBER_ATTEMPTS, InvoiceService
from invgen.services.numbering import (
    InvoiceNumberAllocator,
    format_invoice_number,
    next_invoice_number_from,
    parse_invoice_number,
)
from invgen.utils.exceptions import ConflictException, DuplicateRecordError

from tests.conftest import make_invoice


def test_first_number_for_user_without_invoices():
    assert next_invoice_number_from([]) == "INV-00001"


def test_number_follows_latest():
    assert next_invoice_number_from(["INV-00042"]) == "INV-00043"


def test_number_follows_highest_not_last_listed():
    assert next_invoice_number_from(["INV-00007", "INV-00042", "INV-00010"]) == "INV-00043"


def test_malformed_numbers_are_ignored():
    assert parse_invoice_number("INVOICE-7") is None
    assert parse_invoice_number("INV-") is None
    assert parse_invoice_number(None) is None
    assert next_invoice_number_from(["INV-00003", "draft-copy", "INV-12a"]) == "INV-00004"


def test_width_grows_past_five_digits():
    assert format_invoice_number(99999) == "INV-99999"
    assert format_invoice_number(100000) == "INV-100000"
    assert next_invoice_number_from(["INV-99999"]) == "INV-100000"


@pytest.mark.asyncio
async def test_allocator_seeds_from_existing_invoices(db, acme, user):
    await make_invoice(db, acme, "INV-00042")
    allocator = InvoiceNumberAllocator(SQLDataStore(db))

    assert await allocator.next_invoice_number(user.id) == "INV-00043"
    assert await allocator.next_invoice_number(user.id) == "INV-00044"
    await db.commit()


@pytest.mark.asyncio
async def test_numbers_are_per_user(db, acme, user, other_user):
    await make_invoice(db, acme, "INV-00010")
    allocator = InvoiceNumberAllocator(SQLDataStore(db))

    assert await allocator.next_invoice_number(other_user.id) == "INV-00001"
    assert await allocator.next_invoice_number(user.id) == "INV-00011"
    await db.commit()


@pytest.mark.asyncio
async def test_sequential_creations_get_distinct_numbers(authed_client: AsyncClient, acme):
    numbers = []
    for _ in range(3):
        response = await authed_client.post("/api/v1/invoices", json={
            "client_id": str(acme.id),
            "items": [{"description": "Work", "quantity": "1", "unit_price": "10.00"}],
        })
        assert response.status_code == 201
        numbers.append(response.json()["invoice_number"])

    assert numbers == ["INV-00001", "INV-00002", "INV-00003"]


class CollidingStore(SQLDataStore):
    """Reports a number collision on the first ``collisions`` invoice inserts."""

    def __init__(self, db, collisions: int):
        super().__init__(db)
        self.collisions = collisions
        self.attempts = 0

    async def create_invoice(self, fields, items):
        self.attempts += 1
        if self.attempts <= self.collisions:
            raise DuplicateRecordError("UNIQUE constraint failed: invoices.user_id, invoices.invoice_number")
        return await super().create_invoice(fields, items)


def draft_for(client_id) -> InvoiceCreate:
    return InvoiceCreate(
        client_id=client_id,
        items=[InvoiceItemCreate(description="Work", quantity=Decimal("1"), unit_price=Decimal("10.00"))],
    )


@pytest.mark.asyncio
async def test_create_retries_after_number_collision(db, acme, user, session_factory):
    user_id, client_id = user.id, acme.id
    store = CollidingStore(db, collisions=1)

    invoice = await InvoiceService(store).create_invoice(user_id, draft_for(client_id))

    assert store.attempts == 2
    assert invoice.invoice_number == "INV-00001"
    async with session_factory() as session:
        numbers = (await session.execute(select(Invoice.invoice_number))).scalars().all()
    assert numbers == ["INV-00001"]


@pytest.mark.asyncio
async def test_create_gives_up_after_repeated_collisions(db, acme, user, session_factory):
    user_id, client_id = user.id, acme.id
    store = CollidingStore(db, collisions=MAX_NUMBER_ATTEMPTS)

    with pytest.raises(ConflictException) as exc_info:
        await InvoiceService(store).create_invoice(user_id, draft_for(client_id))

    assert exc_info.value.status_code == 409
    assert store.attempts == MAX_NUMBER_ATTEMPTS
    async with session_factory() as session:
        assert (await session.execute(select(func.count()).select_from(Invoice))).scalar() == 0


@pytest.mark.asyncio
async def test_persistent_collision_answers_conflict(authed_client: AsyncClient, acme, monkeypatch):
    async def always_collides(self, fields, items):
        raise DuplicateRecordError("UNIQUE constraint failed: invoices.user_id, invoices.invoice_number")

    monkeypatch.setattr(SQLDataStore, "create_invoice", always_collides)

    response = await authed_client.post("/api/v1/invoices", json={
        "client_id": str(acme.id),
        "items": [{"description": "Work", "quantity": "1", "unit_price": "10.00"}],
    })

    assert response.status_code == 409
