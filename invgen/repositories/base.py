"""Persistence contract consumed by the services.

Services only talk to a :class:`DataStore`; the concrete adapter is chosen
once at startup (see ``invgen.repositories.build_store``).
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from uuid import UUID

from invgen.models.client import Client
from invgen.models.invoice import Invoice, InvoiceStatus
from invgen.models.user import User


class DataStore(ABC):

    # Users

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_id(self, user_id: UUID) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_verification_token(self, token: str) -> Optional[User]: ...

    @abstractmethod
    async def create_user(self, email: str, password_hash: str, name: Optional[str], **fields) -> User: ...

    @abstractmethod
    async def update_user(self, user_id: UUID, fields: dict) -> User: ...

    @abstractmethod
    async def verify_email_token(self, token: str) -> Optional[User]:
        """Consume ``token``: clear it and stamp the verification time.

        Returns ``None`` when no user holds the token any more.
        """

    # Clients

    @abstractmethod
    async def get_clients_by_user(self, user_id: UUID) -> List[Client]: ...

    @abstractmethod
    async def get_client_by_id(self, client_id: UUID) -> Optional[Client]: ...

    @abstractmethod
    async def create_client(self, fields: dict) -> Client: ...

    @abstractmethod
    async def update_client(self, client_id: UUID, fields: dict) -> Client: ...

    @abstractmethod
    async def delete_client(self, client_id: UUID) -> None:
        """Callers must check that no invoice references the client."""

    @abstractmethod
    async def count_client_invoices(self, client_id: UUID) -> int: ...

    # Invoices

    @abstractmethod
    async def get_invoices_by_user(
        self,
        user_id: UUID,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[UUID] = None,
        search: Optional[str] = None,
    ) -> List[Invoice]:
        """Newest first, with the client loaded."""

    @abstractmethod
    async def get_invoice_by_id(self, invoice_id: UUID) -> Optional[Invoice]:
        """With client and items loaded."""

    @abstractmethod
    async def create_invoice(self, fields: dict, items: Sequence[dict]) -> Invoice:
        """Persist an invoice and its items together.

        Raises :class:`DuplicateRecordError` when the invoice number is taken.
        """

    @abstractmethod
    async def update_invoice(
        self,
        invoice_id: UUID,
        fields: dict,
        items: Optional[Sequence[dict]] = None,
    ) -> Invoice:
        """Apply ``fields``; a non-None ``items`` replaces the item set wholesale."""

    @abstractmethod
    async def delete_invoice(self, invoice_id: UUID) -> None:
        """Delete the items, then the invoice."""

    # Invoice numbering

    @abstractmethod
    async def increment_invoice_sequence(self, user_id: UUID) -> Optional[int]:
        """Atomically bump the user's counter; ``None`` when it does not exist yet."""

    @abstractmethod
    async def start_invoice_sequence(self, user_id: UUID, value: int) -> int:
        """Create the user's counter at ``value``.

        Raises :class:`DuplicateRecordError` if another request created it first.
        """

    # Transactions

    @abstractmethod
    async def rollback(self) -> None: ...
