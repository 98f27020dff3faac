from uuid import UUID
from typing import List
import logging

from invgen.models.client import Client
from invgen.repositories.base import DataStore
from invgen.schemas.client import ClientCreate, ClientUpdate
from invgen.utils.exceptions import BadRequestException, ConflictException, NotFoundException

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, store: DataStore):
        self.store = store

    async def list_clients(self, user_id: UUID) -> List[Client]:
        """List all clients for a user, newest first."""
        return await self.store.get_clients_by_user(user_id)

    async def get_client(self, user_id: UUID, client_id: UUID) -> Client:
        """Get a client the caller owns."""
        client = await self.store.get_client_by_id(client_id)
        if client is None or client.user_id != user_id:
            raise NotFoundException("Client not found")
        return client

    async def create_client(self, user_id: UUID, client_data: ClientCreate) -> Client:
        """Create new Client."""
        client = await self.store.create_client({"user_id": user_id, **client_data.model_dump()})
        logger.info(f"Created client {client.id} for user {user_id}")
        return client

    async def update_client(
        self,
        user_id: UUID,
        client_id: UUID,
        client_data: ClientUpdate,
    ) -> Client:
        """Update client."""
        client = await self.get_client(user_id, client_id)
        update_data = client_data.model_dump(exclude_unset=True)
        for required in ("company_name", "email"):
            if required in update_data and not update_data[required]:
                raise BadRequestException(f"{required} cannot be empty")
        if not update_data:
            return client
        return await self.store.update_client(client.id, update_data)

    async def delete_client(self, user_id: UUID, client_id: UUID) -> None:
        """Delete a client that has no invoices."""
        client = await self.get_client(user_id, client_id)
        if await self.store.count_client_invoices(client.id) > 0:
            raise ConflictException(
                "Cannot delete a client with existing invoices. Please delete the invoices first."
            )
        await self.store.delete_client(client.id)
        logger.info(f"Deleted client {client.id} for user {user_id}")
