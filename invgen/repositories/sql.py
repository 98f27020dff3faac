from typing import List, Optional, Sequence
from uuid import UUID
from datetime import datetime
import logging

from sqlalchemy import select, func, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from invgen.models.client import Client
from invgen.models.invoice import Invoice, InvoiceItem, InvoiceSequence, InvoiceStatus
from invgen.models.user import User
from invgen.repositories.base import DataStore
from invgen.utils.exceptions import DuplicateRecordError, NotFoundException

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """True when ``error`` is a unique or primary key conflict, for any driver."""
    code = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    message = str(error.orig).lower()
    return "unique constraint" in message or "duplicate key" in message


class SQLDataStore(DataStore):
    """SQLAlchemy adapter. Multi-row writes commit once, so they succeed or fail together."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not is_unique_violation(e):
                raise
            raise DuplicateRecordError(str(e.orig)) from e

    # Users

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_user_by_verification_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.verification_token == token))
        return result.scalar_one_or_none()

    async def create_user(self, email: str, password_hash: str, name: Optional[str], **fields) -> User:
        user = User(email=email, hashed_password=password_hash, name=name, **fields)
        self.db.add(user)
        await self._commit()
        await self.db.refresh(user)
        return user

    async def update_user(self, user_id: UUID, fields: dict) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundException("User not found")
        for field, value in fields.items():
            setattr(user, field, value)
        await self._commit()
        await self.db.refresh(user)
        return user

    async def verify_email_token(self, token: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.verification_token == token).with_for_update()
        )
        user = result.scalar_one_or_none()
        if user is None:
            return None
        user.verification_token = None
        user.email_verified = datetime.utcnow()
        await self._commit()
        await self.db.refresh(user)
        return user

    # Clients

    async def get_clients_by_user(self, user_id: UUID) -> List[Client]:
        result = await self.db.execute(
            select(Client)
            .where(Client.user_id == user_id)
            .order_by(Client.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_client_by_id(self, client_id: UUID) -> Optional[Client]:
        return await self.db.get(Client, client_id)

    async def create_client(self, fields: dict) -> Client:
        client = Client(**fields)
        self.db.add(client)
        await self._commit()
        await self.db.refresh(client)
        return client

    async def update_client(self, client_id: UUID, fields: dict) -> Client:
        client = await self.get_client_by_id(client_id)
        if client is None:
            raise NotFoundException("Client not found")
        for field, value in fields.items():
            setattr(client, field, value)
        await self._commit()
        await self.db.refresh(client)
        return client

    async def delete_client(self, client_id: UUID) -> None:
        await self.db.execute(delete(Client).where(Client.id == client_id))
        await self._commit()

    async def count_client_invoices(self, client_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Invoice.id)).where(Invoice.client_id == client_id)
        )
        return result.scalar() or 0

    # Invoices

    async def get_invoices_by_user(
        self,
        user_id: UUID,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[UUID] = None,
        search: Optional[str] = None,
    ) -> List[Invoice]:
        query = (
            select(Invoice)
            .join(Client, Invoice.client_id == Client.id)
            .where(Client.user_id == user_id)
        )
        if status:
            query = query.where(Invoice.status == status)
        if client_id:
            query = query.where(Invoice.client_id == client_id)
        if search:
            search_filter = f"%{search}%"
            query = query.where(
                or_(
                    Invoice.invoice_number.ilike(search_filter),
                    Invoice.notes.ilike(search_filter),
                    Client.company_name.ilike(search_filter),
                )
            )
        query = query.options(joinedload(Invoice.client)).order_by(
            Invoice.created_at.desc(), Invoice.invoice_number.desc()
        )
        result = await self.db.execute(query)
        return list(result.scalars().unique().all())

    async def get_invoice_by_id(self, invoice_id: UUID) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.items), joinedload(Invoice.client))
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _add_items(self, invoice_id: UUID, items: Sequence[dict]):
        for position, item_data in enumerate(items):
            self.db.add(InvoiceItem(invoice_id=invoice_id, position=position, **item_data))

    async def create_invoice(self, fields: dict, items: Sequence[dict]) -> Invoice:
        invoice = Invoice(**fields)
        self.db.add(invoice)
        try:
            await self.db.flush()  # Get invoice ID
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            raise DuplicateRecordError(str(e.orig)) from e
        self._add_items(invoice.id, items)
        await self._commit()
        return await self.get_invoice_by_id(invoice.id)

    async def update_invoice(
        self,
        invoice_id: UUID,
        fields: dict,
        items: Optional[Sequence[dict]] = None,
    ) -> Invoice:
        invoice = await self.db.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundException("Invoice not found")
        for field, value in fields.items():
            setattr(invoice, field, value)
        if items is not None:
            await self.db.execute(delete(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id))
            self._add_items(invoice_id, items)
        await self._commit()
        return await self.get_invoice_by_id(invoice_id)

    async def delete_invoice(self, invoice_id: UUID) -> None:
        await self.db.execute(delete(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id))
        await self.db.execute(delete(Invoice).where(Invoice.id == invoice_id))
        await self._commit()

    # Invoice numbering

    async def increment_invoice_sequence(self, user_id: UUID) -> Optional[int]:
        result = await self.db.execute(
            select(InvoiceSequence)
            .where(InvoiceSequence.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence = result.scalar_one_or_none()
        if sequence is None:
            return None
        sequence.last_value += 1
        await self.db.flush()
        return sequence.last_value

    async def start_invoice_sequence(self, user_id: UUID, value: int) -> int:
        self.db.add(InvoiceSequence(user_id=user_id, last_value=value))
        try:
            await self.db.flush()
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            raise DuplicateRecordError(str(e.orig)) from e
        return value

    async def rollback(self) -> None:
        await self.db.rollback()
